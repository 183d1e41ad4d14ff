"""Failure taxonomy for agent block execution.

Fatal errors (ConfigurationError, PermissionDenied, ProviderTransportError,
ProviderModelError) are raised to the caller. Partial and non-fatal errors
(ToolResolutionPartialFailure, StructuredOutputMismatch, IntentGateFailure)
are logged and attached to the artefact they degraded, never raised out of
execute_agent_block.
"""

from typing import Any


class AgentExecutionError(Exception):
    """Base exception for agent block execution errors."""

    code: str = "AGENT_EXECUTION_ERROR"
    fatal: bool = True

    def __init__(self, message: str, **details: Any) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ConfigurationError(AgentExecutionError):
    """The block cannot run as configured (e.g. no prompt of any kind)."""

    code = "CONFIGURATION_ERROR"


class PermissionDenied(AgentExecutionError):
    """The calling principal may not use a requested capability."""

    code = "PERMISSION_DENIED"

    def __init__(self, capability: str, principal: str | None = None) -> None:
        super().__init__(
            f"Principal {principal!r} is not allowed to use {capability}",
            capability=capability,
            principal=principal,
        )
        self.capability = capability
        self.principal = principal


class ToolResolutionPartialFailure(AgentExecutionError):
    """One tool or server failed to resolve; the tool is dropped."""

    code = "TOOL_RESOLUTION_PARTIAL_FAILURE"
    fatal = False

    def __init__(
        self,
        message: str,
        *,
        tool: str | None = None,
        server_id: str | None = None,
    ) -> None:
        super().__init__(message, tool=tool, server_id=server_id)
        self.tool = tool
        self.server_id = server_id


class ProviderTransportError(AgentExecutionError):
    """Timeout, DNS or connection failure talking to the provider."""

    code = "PROVIDER_TRANSPORT_ERROR"


class ProviderModelError(AgentExecutionError):
    """Failure reported by the model vendor, surfaced verbatim."""

    code = "PROVIDER_MODEL_ERROR"


class StructuredOutputMismatch(AgentExecutionError):
    """Model output did not parse as the requested structured format."""

    code = "STRUCTURED_OUTPUT_MISMATCH"
    fatal = False


class IntentGateFailure(AgentExecutionError):
    """The intent gate could not decide; execution proceeds as RUN."""

    code = "INTENT_GATE_FAILURE"
    fatal = False
