"""Capability resolver: declared tool references to callable descriptors.

Resolution order for one execution:
1. Drop references whose usage control is ``none`` (no network calls)
2. Check elevated capabilities against the permission service
3. Drop remote tools whose server is not connected
4. Build descriptors: non-remote tools concurrently, remote tools from
   their cached schema or one discovery call per server, servers
   concurrently

A tool that cannot be resolved is dropped and reported; only a
permission denial fails the whole resolution.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from conductor.config.models.tools import ToolsConfig
from conductor.domain.errors import PermissionDenied, ToolResolutionPartialFailure
from conductor.domain.execution import ExecutionContext
from conductor.domain.tools import (
    ELEVATED_CAPABILITIES,
    CapabilityKind,
    InlineFunctionToolRef,
    RegisteredCustomToolRef,
    RemoteToolRef,
    ToolKind,
    ToolReference,
    ToolResult,
    ToolSchema,
    UsageControl,
)
from conductor.observability.logging import get_logger
from conductor.observability.metrics import TOOLS_DROPPED, TOOLS_RESOLVED
from conductor.tools.backends import (
    CustomToolCatalog,
    FunctionExecutor,
    PermissionService,
    RemoteToolBackend,
    ServerRegistry,
)
from conductor.tools.descriptor import ToolDescriptor, ToolInvoker
from conductor.tools.params import filter_schema_for_llm

logger = get_logger(__name__)

CONNECTED = "connected"


def remote_tool_id(server_id: str, tool_name: str) -> str:
    return f"{server_id}-{tool_name}"


@dataclass
class ResolvedTools:
    """Descriptors for the provider plus the tools that were dropped."""

    tools: list[ToolDescriptor] = field(default_factory=list)
    failures: list[ToolResolutionPartialFailure] = field(default_factory=list)


class CapabilityResolver:
    """Turns a block's tool references into ToolDescriptors."""

    def __init__(
        self,
        *,
        remote_tools: RemoteToolBackend,
        server_registry: ServerRegistry,
        function_executor: FunctionExecutor,
        custom_tools: CustomToolCatalog,
        permissions: PermissionService,
        config: ToolsConfig,
    ) -> None:
        self._remote = remote_tools
        self._registry = server_registry
        self._functions = function_executor
        self._custom_tools = custom_tools
        self._permissions = permissions
        self._config = config

    async def resolve(
        self,
        references: list[ToolReference],
        ctx: ExecutionContext,
    ) -> ResolvedTools:
        """Resolve references for one execution.

        Raises:
            PermissionDenied: If the principal may not use a requested capability
        """
        active = [ref for ref in references if ref.usage_control != UsageControl.NONE.value]
        if len(active) < len(references):
            TOOLS_DROPPED.labels(reason="usage_none").inc(len(references) - len(active))
        if not active:
            return ResolvedTools()

        await self._check_permissions(active, ctx)
        reachable = await self._filter_unreachable(active, ctx)

        local = [ref for ref in reachable if not isinstance(ref, RemoteToolRef)]
        remote = [ref for ref in reachable if isinstance(ref, RemoteToolRef)]

        local_results, remote_result = await asyncio.gather(
            asyncio.gather(*(self._resolve_local(ref, ctx) for ref in local)),
            self._resolve_remote(remote, ctx),
        )

        resolved = ResolvedTools()
        for item in local_results:
            if isinstance(item, ToolDescriptor):
                resolved.tools.append(item)
            else:
                resolved.failures.append(item)
        resolved.tools.extend(remote_result.tools)
        resolved.failures.extend(remote_result.failures)

        for descriptor in resolved.tools:
            TOOLS_RESOLVED.labels(kind=descriptor.kind.value).inc()
        if resolved.failures:
            TOOLS_DROPPED.labels(reason="resolution_failed").inc(len(resolved.failures))

        logger.info(
            "tools_resolved",
            declared=len(references),
            resolved=len(resolved.tools),
            failed=len(resolved.failures),
        )
        return resolved

    # ========================================================================
    # Gates
    # ========================================================================

    async def _check_permissions(self, refs: list[ToolReference], ctx: ExecutionContext) -> None:
        required: set[CapabilityKind] = {ELEVATED_CAPABILITIES[ToolKind(ref.kind)] for ref in refs}
        for capability in sorted(required, key=lambda c: c.value):
            allowed = await self._permissions.check_allowed(ctx.user_id, capability)
            if not allowed:
                logger.warning(
                    "tool_permission_denied",
                    capability=capability.value,
                    user_id=ctx.user_id,
                )
                raise PermissionDenied(capability.value, ctx.user_id)

    async def _filter_unreachable(
        self,
        refs: list[ToolReference],
        ctx: ExecutionContext,
    ) -> list[ToolReference]:
        server_ids = sorted(
            {ref.server_id for ref in refs if isinstance(ref, RemoteToolRef) and ref.server_id}
        )
        if not server_ids:
            return refs

        available: set[str] = set()
        if ctx.workspace_id:
            try:
                statuses = await self._registry.statuses(ctx.workspace_id, server_ids)
                available = {sid for sid, status in statuses.items() if status == CONNECTED}
            except Exception as e:
                # Availability is an optimization: assume every server is up
                logger.warning("tool_server_status_check_failed", error=str(e))
                available = set(server_ids)

        kept: list[ToolReference] = []
        for ref in refs:
            if not isinstance(ref, RemoteToolRef):
                kept.append(ref)
            elif ref.server_id in available:
                kept.append(ref)
            else:
                TOOLS_DROPPED.labels(reason="server_unavailable").inc()
                logger.info(
                    "tool_server_unavailable",
                    server_id=ref.server_id,
                    tool_name=ref.tool_name,
                )
        return kept

    # ========================================================================
    # Function tools (inline and registered custom)
    # ========================================================================

    async def _resolve_local(
        self,
        ref: ToolReference,
        ctx: ExecutionContext,
    ) -> ToolDescriptor | ToolResolutionPartialFailure:
        try:
            return await self._build_function_tool(ref, ctx)
        except ToolResolutionPartialFailure as failure:
            logger.warning("tool_resolution_failed", tool=failure.tool, error=failure.message)
            return failure
        except Exception as e:
            logger.error("tool_creation_failed", kind=ref.kind, error=str(e))
            return ToolResolutionPartialFailure(f"Error creating tool: {e}", tool=ref.kind)

    async def _build_function_tool(self, ref: ToolReference, ctx: ExecutionContext) -> ToolDescriptor:
        assert isinstance(ref, InlineFunctionToolRef | RegisteredCustomToolRef)
        schema, code, title = ref.schema_, ref.code, ref.title

        if isinstance(ref, RegisteredCustomToolRef) and not schema:
            definition = await self._custom_tools.get(ref.custom_tool_id, ctx)
            if definition is None:
                raise ToolResolutionPartialFailure(
                    f"Custom tool not found: {ref.custom_tool_id}",
                    tool=ref.custom_tool_id,
                )
            schema, code, title = definition.schema_, definition.code, definition.title

        function = (schema or {}).get("function")
        if not isinstance(function, dict) or not function.get("name"):
            raise ToolResolutionPartialFailure(
                "Custom tool missing schema",
                tool=title or getattr(ref, "custom_tool_id", None),
            )

        declared = function.get("parameters") or {"type": "object", "properties": {}}
        parameters = filter_schema_for_llm(declared, ref.params)
        parameters["type"] = declared.get("type", "object")

        return ToolDescriptor(
            id=f"{self._config.custom_tool_prefix}{title or function['name']}",
            name=function["name"],
            description=function.get("description") or "",
            parameters=parameters,
            kind=ToolKind(ref.kind),
            invoker=self._function_invoker(code, ref.timeout_ms, ctx),
            params=dict(ref.params),
            usage_control=UsageControl(ref.usage_control),
        )

    def _function_invoker(
        self,
        code: str | None,
        timeout_ms: int | None,
        ctx: ExecutionContext,
    ) -> ToolInvoker:
        environment = {
            "env_vars": dict(ctx.environment_variables),
            "workflow_variables": dict(ctx.workflow_variables),
            "context": {
                "workflow_id": ctx.workflow_id,
                "workspace_id": ctx.workspace_id,
                "user_id": ctx.user_id,
                "is_deployed": ctx.is_deployed,
            },
        }
        timeout = timeout_ms or self._config.function_timeout_ms

        async def invoke(args: dict[str, Any]) -> ToolResult:
            if not code:
                return ToolResult(success=False, error="Tool has no executable code")
            try:
                output = await self._functions.invoke(code, args, environment, timeout)
            except Exception as e:
                logger.warning("function_tool_failed", error=str(e))
                return ToolResult(success=False, error=str(e) or "Function execution failed")
            return ToolResult(success=True, output=output)

        return invoke

    # ========================================================================
    # Remote tools
    # ========================================================================

    async def _resolve_remote(
        self,
        refs: list[RemoteToolRef],
        ctx: ExecutionContext,
    ) -> ResolvedTools:
        resolved = ResolvedTools()
        needs_discovery: dict[str, list[RemoteToolRef]] = defaultdict(list)

        for ref in refs:
            if not ref.server_id or not ref.tool_name:
                resolved.failures.append(
                    ToolResolutionPartialFailure(
                        "Remote tool missing server id or tool name",
                        tool=ref.tool_name,
                        server_id=ref.server_id,
                    )
                )
            elif ref.schema_:
                resolved.tools.append(
                    self._remote_descriptor(ref, ref.schema_, ref.schema_.get("description"), ctx)
                )
            else:
                logger.info("tool_schema_missing_discovering", tool_name=ref.tool_name)
                needs_discovery[ref.server_id].append(ref)

        batches = await asyncio.gather(
            *(self._resolve_server(server_id, group, ctx) for server_id, group in needs_discovery.items())
        )
        for batch in batches:
            resolved.tools.extend(batch.tools)
            resolved.failures.extend(batch.failures)
        return resolved

    async def _resolve_server(
        self,
        server_id: str,
        refs: list[RemoteToolRef],
        ctx: ExecutionContext,
    ) -> ResolvedTools:
        resolved = ResolvedTools()
        try:
            discovered = await self._discover(server_id, ctx)
        except Exception as e:
            logger.error("tool_discovery_failed", server_id=server_id, error=str(e))
            resolved.failures.extend(
                ToolResolutionPartialFailure(
                    f"Failed to discover tools from server {server_id}: {e}",
                    tool=ref.tool_name,
                    server_id=server_id,
                )
                for ref in refs
            )
            return resolved

        by_name: dict[str, ToolSchema] = {schema.name: schema for schema in discovered}
        for ref in refs:
            schema = by_name.get(ref.tool_name or "")
            if schema is None:
                logger.error("tool_not_found_on_server", server_id=server_id, tool_name=ref.tool_name)
                resolved.failures.append(
                    ToolResolutionPartialFailure(
                        f"Tool {ref.tool_name} not found on server {server_id}",
                        tool=ref.tool_name,
                        server_id=server_id,
                    )
                )
                continue
            if not ref.server_name and schema.server_name:
                ref = ref.model_copy(update={"server_name": schema.server_name})
            resolved.tools.append(
                self._remote_descriptor(ref, schema.input_schema, schema.description, ctx)
            )
        return resolved

    def _is_retryable(self, message: str) -> bool:
        lowered = message.lower()
        return any(marker in lowered for marker in self._config.retryable_error_markers)

    async def _discover(self, server_id: str, ctx: ExecutionContext) -> list[ToolSchema]:
        """One discovery call per server, retried on session/validation errors."""
        attempts = self._config.discovery_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return await self._remote.discover(server_id, ctx)
            except Exception as e:
                if attempt < attempts and self._is_retryable(str(e)):
                    logger.warning(
                        "tool_discovery_retry",
                        server_id=server_id,
                        attempt=attempt,
                        error=str(e),
                    )
                    await asyncio.sleep(self._config.discovery_backoff_ms / 1000)
                    continue
                raise
        raise RuntimeError(f"Failed to discover tools from server {server_id} after {attempts} attempts")

    def _remote_descriptor(
        self,
        ref: RemoteToolRef,
        input_schema: dict[str, Any],
        description: str | None,
        ctx: ExecutionContext,
    ) -> ToolDescriptor:
        assert ref.server_id and ref.tool_name
        server_id, tool_name = ref.server_id, ref.tool_name
        server_name = ref.server_name or server_id

        async def invoke(args: dict[str, Any]) -> ToolResult:
            try:
                result = await self._remote.invoke(server_id, tool_name, args, ctx, input_schema)
            except Exception as e:
                logger.warning("remote_tool_failed", server_id=server_id, tool_name=tool_name, error=str(e))
                return ToolResult(success=False, error=str(e) or "Remote tool execution failed")
            result.metadata.setdefault("source", "remote")
            result.metadata.setdefault("server_id", server_id)
            result.metadata.setdefault("server_name", server_name)
            result.metadata.setdefault("tool_name", tool_name)
            return result

        return ToolDescriptor(
            id=remote_tool_id(server_id, tool_name),
            name=tool_name,
            description=description or f"Remote tool {tool_name} from {server_name}",
            parameters=filter_schema_for_llm(input_schema, ref.params),
            kind=ToolKind.REMOTE_DISCOVERABLE,
            invoker=invoke,
            params=dict(ref.params),
            usage_control=UsageControl(ref.usage_control),
        )
