"""Domain layer - pure models for agent block execution.

These are Pydantic models and dataclasses with no dependency on stores,
providers or configuration. Everything else in conductor builds on them.
"""

from conductor.domain.errors import (
    AgentExecutionError,
    ConfigurationError,
    IntentGateFailure,
    PermissionDenied,
    ProviderModelError,
    ProviderTransportError,
    StructuredOutputMismatch,
    ToolResolutionPartialFailure,
)
from conductor.domain.execution import (
    AgentInputs,
    BufferedResult,
    ExecutionContext,
    ExecutionMetadata,
    ExecutionResult,
    IntentDecision,
    IntentVerdict,
    MemoryType,
    PriorTurn,
    StreamingResult,
    TokenCounts,
    ToolCallSummary,
)
from conductor.domain.memory import MemoryKind, MemoryRecord, MemoryScope
from conductor.domain.messages import Message, Role, coerce_message
from conductor.domain.tools import (
    CapabilityKind,
    CustomToolDefinition,
    InlineFunctionToolRef,
    RegisteredCustomToolRef,
    RemoteToolRef,
    ToolKind,
    ToolReference,
    ToolResult,
    ToolSchema,
    UsageControl,
)

__all__ = [
    # Messages
    "Message",
    "Role",
    "coerce_message",
    # Memory
    "MemoryKind",
    "MemoryRecord",
    "MemoryScope",
    # Tools
    "CapabilityKind",
    "CustomToolDefinition",
    "InlineFunctionToolRef",
    "RegisteredCustomToolRef",
    "RemoteToolRef",
    "ToolKind",
    "ToolReference",
    "ToolResult",
    "ToolSchema",
    "UsageControl",
    # Execution
    "AgentInputs",
    "BufferedResult",
    "ExecutionContext",
    "ExecutionMetadata",
    "ExecutionResult",
    "IntentDecision",
    "IntentVerdict",
    "MemoryType",
    "PriorTurn",
    "StreamingResult",
    "TokenCounts",
    "ToolCallSummary",
    # Errors
    "AgentExecutionError",
    "ConfigurationError",
    "IntentGateFailure",
    "PermissionDenied",
    "ProviderModelError",
    "ProviderTransportError",
    "StructuredOutputMismatch",
    "ToolResolutionPartialFailure",
]
