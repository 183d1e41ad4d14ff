"""Inputs, context and results of one agent block execution."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from conductor.domain.errors import IntentGateFailure
from conductor.domain.memory import MemoryRecord
from conductor.domain.tools import ToolReference


class MemoryType(str, Enum):
    """Known memory modes. Any value other than ``none`` enables memory."""

    NONE = "none"
    CONVERSATION = "conversation"


class AgentInputs(BaseModel):
    """Declarative inputs of an agent block.

    Numeric sampling controls arrive as whatever the editor stored, so
    strings and empty values are accepted here and normalized by the
    dispatcher.
    """

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    model: str | None = None

    # Prompt sources
    system_prompt: Any = None
    user_prompt: Any = None
    messages: list[Any] = Field(default_factory=list)
    memories: Any = None

    # Memory
    memory_type: str | None = MemoryType.NONE.value
    conversation_id: str | None = None

    # Tools and output contract
    tools: list[ToolReference] = Field(default_factory=list)
    response_format: Any = None

    # Sampling controls
    temperature: float | str | None = None
    max_tokens: int | str | None = None
    reasoning_effort: str | None = None
    verbosity: str | None = None
    thinking_level: str | None = None
    previous_interaction_id: str | None = None

    # Credentials
    api_key: str | None = None
    azure_endpoint: str | None = None
    azure_api_version: str | None = None
    vertex_project: str | None = None
    vertex_location: str | None = None
    vertex_credential: str | None = None
    bedrock_access_key_id: str | None = None
    bedrock_secret_key: str | None = None
    bedrock_region: str | None = None

    @property
    def memory_enabled(self) -> bool:
        return bool(self.memory_type) and self.memory_type != MemoryType.NONE.value


@dataclass
class ExecutionContext:
    """Where and for whom a block runs.

    Built by the workflow executor for each block invocation.
    """

    block_id: str
    workflow_id: str
    user_id: str | None = None
    workspace_id: str | None = None
    execution_id: str | None = None
    block_name: str | None = None
    block_type: str = "agent"
    trigger_type: str | None = None
    is_deployed: bool = False

    # Streaming selection
    stream: bool = False
    selected_outputs: list[str] = field(default_factory=list)

    environment_variables: dict[str, str] = field(default_factory=dict)
    workflow_variables: dict[str, Any] = field(default_factory=dict)

    def is_selected_for_output(self) -> bool:
        """Whether the chat surface asked for this block's output.

        Selectors are either the block id or ``<blockId>_<path>``.
        """
        for output_id in self.selected_outputs:
            if output_id == self.block_id:
                return True
            prefix, sep, _ = output_id.partition("_")
            if sep and prefix == self.block_id:
                return True
        return False

    @property
    def should_stream(self) -> bool:
        return self.stream and self.is_selected_for_output()


class TokenCounts(BaseModel):
    """Token usage reported for one execution."""

    input: int = 0
    output: int = 0
    total: int = 0


class ToolCallSummary(BaseModel):
    """Tool calls made by the model during the execution."""

    calls: list[dict[str, Any]] = Field(default_factory=list)
    count: int = 0


class BufferedResult(BaseModel):
    """Result whose content is complete when returned."""

    content: str
    model: str
    block_id: str | None = None
    tokens: TokenCounts = Field(default_factory=TokenCounts)
    tool_calls: ToolCallSummary = Field(default_factory=ToolCallSummary)
    cost: dict[str, Any] | None = None
    provider_timing: dict[str, Any] | None = None
    interaction_id: str | None = None

    # Structured output
    structured_output: Any = None
    response_format_warning: str | None = None

    # Set when the intent gate answered without the provider pipeline
    skipped: bool = False

    def to_output(self) -> dict[str, Any]:
        """Flatten to the block output shape.

        Structured objects are spread at the top level, next to the
        execution metadata.
        """
        metadata = {
            "tokens": self.tokens.model_dump(),
            "toolCalls": {"list": self.tool_calls.calls, "count": self.tool_calls.count},
            "providerTiming": self.provider_timing,
            "cost": self.cost,
        }
        if isinstance(self.structured_output, dict):
            return {**self.structured_output, **metadata}
        output: dict[str, Any] = {"content": self.content, "model": self.model, **metadata}
        if self.interaction_id:
            output["interactionId"] = self.interaction_id
        if self.response_format_warning:
            output["_responseFormatWarning"] = self.response_format_warning
        return output


class ExecutionMetadata(BaseModel):
    """Metadata shell of a streaming execution, available immediately."""

    success: bool = True
    block_id: str | None = None
    block_name: str | None = None
    block_type: str | None = None
    model: str | None = None
    is_streaming: bool = True
    output: dict[str, Any] = Field(default_factory=dict)
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass
class StreamingResult:
    """Result whose content arrives incrementally through ``stream``."""

    stream: AsyncIterator[str | bytes]
    execution: ExecutionMetadata


ExecutionResult = BufferedResult | StreamingResult


class PriorTurn(BaseModel):
    """Most recent completed exchange of a conversation."""

    initial_input: str | None = None
    final_output: str | None = None


class IntentDecision(str, Enum):
    RUN = "RUN"
    SKIP = "SKIP"


@dataclass
class IntentVerdict:
    """Outcome of the intent gate.

    ``memories`` holds the conversational records consulted while
    deciding, so assembly does not search again. It is None when the gate
    did not search.
    """

    decision: IntentDecision
    reply: str | None = None
    memories: list[MemoryRecord] | None = None
    failure: IntentGateFailure | None = None

    @property
    def should_run(self) -> bool:
        return self.decision == IntentDecision.RUN

    @classmethod
    def run(
        cls,
        memories: list[MemoryRecord] | None = None,
        failure: IntentGateFailure | None = None,
    ) -> "IntentVerdict":
        return cls(decision=IntentDecision.RUN, memories=memories, failure=failure)
