"""Tools: capability resolution and tool backends."""

from conductor.tools.backends import (
    CustomToolCatalog,
    FunctionExecutor,
    PermissionService,
    RemoteToolBackend,
    ServerRegistry,
    ToolBackendError,
)
from conductor.tools.descriptor import ToolDescriptor
from conductor.tools.params import filter_schema_for_llm, merge_tool_parameters
from conductor.tools.resolver import CapabilityResolver, ResolvedTools, remote_tool_id

__all__ = [
    "CapabilityResolver",
    "ResolvedTools",
    "ToolDescriptor",
    "remote_tool_id",
    "filter_schema_for_llm",
    "merge_tool_parameters",
    # Backends
    "CustomToolCatalog",
    "FunctionExecutor",
    "PermissionService",
    "RemoteToolBackend",
    "ServerRegistry",
    "ToolBackendError",
]
