"""Provider request construction and dispatch."""

from conductor.agent.dispatch.backend import (
    ExecutorProviderBackend,
    ProviderBackend,
    format_tool_call,
    strip_custom_tool_prefix,
)
from conductor.agent.dispatch.dispatcher import ProviderDispatcher, classify_provider_error
from conductor.agent.dispatch.models import Credentials, ProviderRequest, SamplingParams

__all__ = [
    "Credentials",
    "ExecutorProviderBackend",
    "ProviderBackend",
    "ProviderDispatcher",
    "ProviderRequest",
    "SamplingParams",
    "classify_provider_error",
    "format_tool_call",
    "strip_custom_tool_prefix",
]
