"""Interfaces of the services the capability resolver depends on."""

from typing import Any, Protocol

from conductor.domain.tools import CapabilityKind, CustomToolDefinition, ToolResult, ToolSchema


class ToolBackendError(Exception):
    """A tool backend call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ToolCallContext(Protocol):
    """Identity of the execution a tool call belongs to."""

    workspace_id: str | None
    workflow_id: str
    user_id: str | None


class RemoteToolBackend(Protocol):
    """Separately managed servers hosting discoverable tools."""

    async def discover(self, server_id: str, context: ToolCallContext) -> list[ToolSchema]:
        """List the tools a server exposes.

        Raises:
            ToolBackendError: On discovery failure
        """
        ...

    async def invoke(
        self,
        server_id: str,
        tool_name: str,
        args: dict[str, Any],
        context: ToolCallContext,
        tool_schema: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Execute a tool on its server."""
        ...


class ServerRegistry(Protocol):
    """Live connection status of tool servers."""

    async def statuses(self, workspace_id: str | None, server_ids: list[str]) -> dict[str, str]:
        """Map server id to status; unknown or deleted servers are absent."""
        ...


class FunctionExecutor(Protocol):
    """Runs function-tool code."""

    async def invoke(
        self,
        code: str,
        args: dict[str, Any],
        environment: dict[str, Any],
        timeout_ms: int,
    ) -> Any:
        """Run code with args and return its value.

        Raises:
            ToolBackendError: If the code fails or times out
        """
        ...


class CustomToolCatalog(Protocol):
    """Registered custom tools of a workspace."""

    async def get(self, tool_id: str, context: ToolCallContext) -> CustomToolDefinition | None:
        ...


class PermissionService(Protocol):
    """Decides whether a principal may use an elevated capability."""

    async def check_allowed(self, principal: str | None, capability: CapabilityKind) -> bool:
        ...
