"""Uniform callable-tool descriptor handed to the provider."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from conductor.domain.tools import ToolKind, ToolResult, UsageControl
from conductor.tools.params import merge_tool_parameters

ToolInvoker = Callable[[dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool the model may call during one execution.

    Built fresh for every execution, since tool availability can change
    between turns. ``parameters`` is the schema the model sees, without
    the parameters bound in ``params``.
    """

    id: str
    name: str
    description: str
    parameters: dict[str, Any]
    kind: ToolKind
    invoker: ToolInvoker
    params: dict[str, Any] = field(default_factory=dict)
    usage_control: UsageControl = UsageControl.AUTO

    @property
    def forced(self) -> bool:
        return self.usage_control == UsageControl.FORCE

    async def invoke(self, args: dict[str, Any] | None = None) -> ToolResult:
        """Call the tool with the model's arguments merged over bound params."""
        return await self.invoker(merge_tool_parameters(self.params, args))
