"""Declared tool references and tool execution results.

A block declares tools as references tagged by kind. The capability
resolver turns them into ToolDescriptors for one execution.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ToolKind(str, Enum):
    """Kinds of tool reference a block can declare."""

    INLINE_FUNCTION = "inline-function"
    REGISTERED_CUSTOM = "registered-custom"
    REMOTE_DISCOVERABLE = "remote-discoverable"


class UsageControl(str, Enum):
    """How the model may use a tool."""

    AUTO = "auto"
    FORCE = "force"
    NONE = "none"


class CapabilityKind(str, Enum):
    """Elevated capabilities that require a permission check."""

    CUSTOM_TOOLS = "custom_tools"
    REMOTE_TOOLS = "remote_tools"


class _ToolReferenceBase(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True, populate_by_name=True)

    usage_control: UsageControl = UsageControl.AUTO
    params: dict[str, Any] = Field(
        default_factory=dict, description="Parameters bound statically by the caller"
    )
    schema_: dict[str, Any] | None = Field(
        default=None, alias="schema", description="Cached tool schema, if any"
    )


class InlineFunctionToolRef(_ToolReferenceBase):
    """Function tool whose schema and code are declared on the block."""

    kind: Literal["inline-function"] = "inline-function"
    title: str
    code: str | None = None
    timeout_ms: int | None = None


class RegisteredCustomToolRef(_ToolReferenceBase):
    """Custom tool registered in the workspace, resolved by id."""

    kind: Literal["registered-custom"] = "registered-custom"
    custom_tool_id: str
    title: str | None = None
    code: str | None = None
    timeout_ms: int | None = None


class RemoteToolRef(_ToolReferenceBase):
    """Tool hosted by a separately managed tool server."""

    kind: Literal["remote-discoverable"] = "remote-discoverable"
    server_id: str | None = None
    tool_name: str | None = None
    server_name: str | None = None


ToolReference = Annotated[
    InlineFunctionToolRef | RegisteredCustomToolRef | RemoteToolRef,
    Field(discriminator="kind"),
]

ELEVATED_CAPABILITIES: dict[ToolKind, CapabilityKind] = {
    ToolKind.INLINE_FUNCTION: CapabilityKind.CUSTOM_TOOLS,
    ToolKind.REGISTERED_CUSTOM: CapabilityKind.CUSTOM_TOOLS,
    ToolKind.REMOTE_DISCOVERABLE: CapabilityKind.REMOTE_TOOLS,
}


class ToolSchema(BaseModel):
    """Schema of a tool as advertised by a tool server or registry."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    server_name: str | None = None


class CustomToolDefinition(BaseModel):
    """Registered custom tool as stored in the workspace catalogue."""

    id: str
    title: str
    schema_: dict[str, Any] = Field(..., alias="schema")
    code: str = ""

    model_config = ConfigDict(populate_by_name=True)


class ToolResult(BaseModel):
    """Result of one tool invocation."""

    success: bool
    output: Any = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
