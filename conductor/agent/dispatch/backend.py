"""Provider backend contract and its LLMExecutor implementation."""

import json
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from conductor.agent.dispatch.models import ProviderRequest
from conductor.domain.execution import (
    BufferedResult,
    ExecutionMetadata,
    ExecutionResult,
    StreamingResult,
    TokenCounts,
    ToolCallSummary,
)
from conductor.observability.logging import get_logger
from conductor.providers.llm import LLMExecutor, LLMMessage, LLMResponse, LLMToolCall, create_executor
from conductor.tools.descriptor import ToolDescriptor

logger = get_logger(__name__)

CUSTOM_TOOL_PREFIX = "custom_"


class ProviderBackend(Protocol):
    """Executes one provider request, buffered or streaming."""

    async def execute(self, request: ProviderRequest) -> ExecutionResult: ...


def strip_custom_tool_prefix(name: str) -> str:
    return name[len(CUSTOM_TOOL_PREFIX):] if name.startswith(CUSTOM_TOOL_PREFIX) else name


def format_tool_call(call: LLMToolCall) -> dict[str, Any]:
    return {
        "name": strip_custom_tool_prefix(call.name),
        "arguments": call.arguments or {},
        "result": call.result,
        "duration": call.duration_ms,
    }


def _agno_function(descriptor: ToolDescriptor) -> Any:
    """Wrap a descriptor as an Agno function the model can call."""
    from agno.tools.function import Function

    async def entrypoint(**kwargs: Any) -> str:
        result = await descriptor.invoke(kwargs)
        if not result.success:
            return json.dumps({"error": result.error or "Tool execution failed"})
        if isinstance(result.output, str):
            return result.output
        return json.dumps(result.output, default=str)

    return Function(
        name=descriptor.name,
        description=descriptor.description,
        parameters=descriptor.parameters,
        entrypoint=entrypoint,
        skip_entrypoint_processing=True,
    )


def _tool_choice(request: ProviderRequest) -> str | dict[str, Any] | None:
    forced = request.forced_tools
    if not forced:
        return None
    if len(forced) == 1:
        return {"type": "function", "function": {"name": forced[0].name}}
    return "required"


class ExecutorProviderBackend:
    """ProviderBackend that runs requests through LLMExecutor.

    Args:
        executor_factory: Builds the executor for a ``provider/model``
            string; tests pass one returning a MockLLMExecutor
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        executor_factory: Callable[[str], LLMExecutor] | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._factory = executor_factory or (
            lambda model: create_executor(model, step_name="agent_block", timeout=timeout)
        )

    async def execute(self, request: ProviderRequest) -> ExecutionResult:
        executor = self._factory(request.route)
        messages = [LLMMessage(**message.to_provider()) for message in request.messages]
        arguments: dict[str, Any] = {
            "max_tokens": request.sampling.max_tokens,
            "temperature": request.sampling.temperature,
            "tools": [_agno_function(tool) for tool in request.tools] or None,
            "tool_choice": _tool_choice(request),
            "response_format": (
                request.response_format.to_provider() if request.response_format else None
            ),
            "credentials": request.credentials.for_executor(),
            **request.sampling.options(),
        }
        logger.debug(
            "provider_request_built",
            route=request.route,
            messages=len(messages),
            tools=len(request.tools),
            stream=request.stream,
            structured=request.response_format is not None,
        )

        if request.stream:
            return StreamingResult(
                stream=executor.generate_stream(messages, **arguments),
                execution=ExecutionMetadata(model=request.model, is_streaming=True),
            )

        started = datetime.now(UTC)
        start = time.perf_counter()
        response = await executor.generate(messages, **arguments)
        duration_ms = (time.perf_counter() - start) * 1000
        return self._buffered(request, response, started, duration_ms)

    def _buffered(
        self,
        request: ProviderRequest,
        response: LLMResponse,
        started: datetime,
        duration_ms: float,
    ) -> BufferedResult:
        usage = response.usage
        calls = [format_tool_call(call) for call in response.tool_calls]
        return BufferedResult(
            content=response.content,
            model=request.model,
            tokens=TokenCounts(
                input=usage.prompt_tokens if usage else 0,
                output=usage.completion_tokens if usage else 0,
                total=usage.total_tokens if usage else 0,
            ),
            tool_calls=ToolCallSummary(calls=calls, count=len(calls)),
            provider_timing={
                "startTime": started.isoformat(),
                "endTime": datetime.now(UTC).isoformat(),
                "duration": round(duration_ms, 2),
            },
            interaction_id=response.metadata.get("interaction_id"),
        )
