"""HTTP implementations of the tool backends.

All three talk to the workflow application's internal API:
- GET  /api/mcp/tools/discover   remote tool discovery
- POST /api/mcp/tools/execute    remote tool execution
- GET  /api/tools/custom         registered custom tools
- POST /api/function/execute     function tool code
"""

from typing import Any

import httpx

from conductor.domain.tools import CustomToolDefinition, ToolResult, ToolSchema
from conductor.observability.logging import get_logger
from conductor.tools.backends import ToolBackendError, ToolCallContext

logger = get_logger(__name__)


class ToolApiClient:
    """Shared httpx client for the internal tool API."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "ToolApiClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method=method,
                url=path,
                headers=self._headers(),
                json=json,
                params={k: v for k, v in (params or {}).items() if v is not None},
            )
        except httpx.HTTPError as e:
            raise ToolBackendError(f"Tool API unreachable: {e}") from e

        if response.status_code >= 400:
            raise ToolBackendError(
                f"{response.status_code} {response.text}",
                status_code=response.status_code,
            )
        return response.json()


def _context_params(context: ToolCallContext) -> dict[str, Any]:
    return {
        "workspaceId": context.workspace_id,
        "workflowId": context.workflow_id,
        "userId": context.user_id,
    }


class HttpRemoteToolBackend:
    """RemoteToolBackend over the tool server API."""

    def __init__(self, api: ToolApiClient) -> None:
        self._api = api

    async def discover(self, server_id: str, context: ToolCallContext) -> list[ToolSchema]:
        if not context.workspace_id:
            raise ToolBackendError("workspaceId is required for tool discovery")

        data = await self._api.request(
            "GET",
            "/api/mcp/tools/discover",
            params={"serverId": server_id, **_context_params(context)},
        )
        if not data.get("success"):
            raise ToolBackendError(data.get("error") or "Failed to discover tools")

        return [
            ToolSchema(
                name=tool["name"],
                description=tool.get("description"),
                input_schema=tool.get("inputSchema") or {"type": "object", "properties": {}},
                server_name=tool.get("serverName"),
            )
            for tool in data.get("data", {}).get("tools", [])
            if tool.get("name")
        ]

    async def invoke(
        self,
        server_id: str,
        tool_name: str,
        args: dict[str, Any],
        context: ToolCallContext,
        tool_schema: dict[str, Any] | None = None,
    ) -> ToolResult:
        data = await self._api.request(
            "POST",
            "/api/mcp/tools/execute",
            params={"userId": context.user_id},
            json={
                "serverId": server_id,
                "toolName": tool_name,
                "arguments": args,
                "workspaceId": context.workspace_id,
                "workflowId": context.workflow_id,
                "toolSchema": tool_schema,
            },
        )
        if not data.get("success"):
            raise ToolBackendError(data.get("error") or "Remote tool execution failed")
        return ToolResult(
            success=True,
            output=(data.get("data") or {}).get("output") or {},
            metadata={"source": "remote", "server_id": server_id, "tool_name": tool_name},
        )


class HttpCustomToolCatalog:
    """CustomToolCatalog over the custom tools API."""

    def __init__(self, api: ToolApiClient) -> None:
        self._api = api

    async def get(self, tool_id: str, context: ToolCallContext) -> CustomToolDefinition | None:
        data = await self._api.request("GET", "/api/tools/custom", params=_context_params(context))
        tools = data.get("data") if isinstance(data, dict) else None
        if not isinstance(tools, list):
            raise ToolBackendError("Invalid custom tools API response")

        for tool in tools:
            if tool.get("id") == tool_id:
                return CustomToolDefinition(
                    id=tool["id"],
                    title=tool.get("title") or tool_id,
                    schema=tool.get("schema") or {},
                    code=tool.get("code") or "",
                )
        logger.warning("custom_tool_not_found", tool_id=tool_id)
        return None


class HttpFunctionExecutor:
    """FunctionExecutor over the function execution API."""

    def __init__(self, api: ToolApiClient) -> None:
        self._api = api

    async def invoke(
        self,
        code: str,
        args: dict[str, Any],
        environment: dict[str, Any],
        timeout_ms: int,
    ) -> Any:
        context = environment.get("context", {})
        data = await self._api.request(
            "POST",
            "/api/function/execute",
            json={
                "code": code,
                **args,
                "timeout": timeout_ms,
                "envVars": environment.get("env_vars", {}),
                "workflowVariables": environment.get("workflow_variables", {}),
                "isCustomTool": True,
                "_context": {
                    "workflowId": context.get("workflow_id"),
                    "workspaceId": context.get("workspace_id"),
                    "userId": context.get("user_id"),
                    "isDeployedContext": context.get("is_deployed", False),
                },
            },
        )
        if not data.get("success"):
            raise ToolBackendError(data.get("error") or "Function execution failed")
        output = data.get("output")
        if isinstance(output, dict) and "result" in output:
            return output["result"]
        return output
