"""In-memory implementations of the tool backends.

For testing and development. Not suitable for production use.
"""

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from conductor.domain.tools import CapabilityKind, CustomToolDefinition, ToolResult, ToolSchema
from conductor.tools.backends import ToolBackendError, ToolCallContext


class InMemoryServerRegistry:
    """Server statuses held in a dict."""

    def __init__(self, statuses: dict[str, str] | None = None) -> None:
        self._statuses = dict(statuses or {})
        self.error: Exception | None = None
        self.calls = 0

    def set_status(self, server_id: str, status: str) -> None:
        self._statuses[server_id] = status

    async def statuses(self, workspace_id: str | None, server_ids: list[str]) -> dict[str, str]:  # noqa: ARG002
        self.calls += 1
        if self.error is not None:
            raise self.error
        return {sid: self._statuses[sid] for sid in server_ids if sid in self._statuses}


class InMemoryRemoteToolBackend:
    """Tool servers whose tools are plain Python callables.

    ``discovery_errors`` lists exceptions raised by successive discovery
    calls of a server before it answers normally.
    """

    def __init__(self) -> None:
        self._schemas: dict[str, list[ToolSchema]] = {}
        self._handlers: dict[tuple[str, str], Callable[..., Any]] = {}
        self.discovery_errors: dict[str, list[Exception]] = {}
        self.discover_calls: list[str] = []

    def add_tool(
        self,
        server_id: str,
        schema: ToolSchema,
        handler: Callable[..., Any] | None = None,
    ) -> None:
        self._schemas.setdefault(server_id, []).append(schema)
        if handler is not None:
            self._handlers[(server_id, schema.name)] = handler

    async def discover(self, server_id: str, context: ToolCallContext) -> list[ToolSchema]:  # noqa: ARG002
        self.discover_calls.append(server_id)
        pending = self.discovery_errors.get(server_id)
        if pending:
            raise pending.pop(0)
        return list(self._schemas.get(server_id, []))

    async def invoke(
        self,
        server_id: str,
        tool_name: str,
        args: dict[str, Any],
        context: ToolCallContext,  # noqa: ARG002
        tool_schema: dict[str, Any] | None = None,  # noqa: ARG002
    ) -> ToolResult:
        handler = self._handlers.get((server_id, tool_name))
        if handler is None:
            raise ToolBackendError(f"Tool {tool_name} not found on server {server_id}", 404)
        output = handler(**args)
        if inspect.isawaitable(output):
            output = await output
        return ToolResult(success=True, output=output)


class InMemoryFunctionExecutor:
    """Runs registered Python callables in place of tool code.

    The code string of a tool is the key of the callable that stands
    for it.
    """

    def __init__(self, functions: dict[str, Callable[..., Any]] | None = None) -> None:
        self._functions = dict(functions or {})
        self.calls: list[dict[str, Any]] = []

    def register(self, code: str, function: Callable[..., Any]) -> None:
        self._functions[code] = function

    async def invoke(
        self,
        code: str,
        args: dict[str, Any],
        environment: dict[str, Any],
        timeout_ms: int,
    ) -> Any:
        self.calls.append({"code": code, "args": args, "environment": environment})
        function = self._functions.get(code)
        if function is None:
            raise ToolBackendError("Function execution failed: unknown code")

        async def run() -> Any:
            output = function(**args)
            if inspect.isawaitable(output):
                output = await output
            return output

        try:
            return await asyncio.wait_for(run(), timeout=timeout_ms / 1000)
        except TimeoutError as e:
            raise ToolBackendError(f"Function timed out after {timeout_ms}ms") from e


class InMemoryCustomToolCatalog:
    """Registered custom tools keyed by id."""

    def __init__(self, tools: list[CustomToolDefinition] | None = None) -> None:
        self._tools = {tool.id: tool for tool in tools or []}
        self.lookups: list[str] = []

    def add(self, tool: CustomToolDefinition) -> None:
        self._tools[tool.id] = tool

    async def get(self, tool_id: str, context: ToolCallContext) -> CustomToolDefinition | None:  # noqa: ARG002
        self.lookups.append(tool_id)
        return self._tools.get(tool_id)


class InMemoryPermissionService:
    """Grants every capability except those denied explicitly."""

    def __init__(self, denied: set[CapabilityKind] | None = None) -> None:
        self.denied = set(denied or set())
        self.checks: list[tuple[str | None, CapabilityKind]] = []

    async def check_allowed(self, principal: str | None, capability: CapabilityKind) -> bool:
        self.checks.append((principal, capability))
        return capability not in self.denied
