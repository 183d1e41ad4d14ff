"""Agno-backed execution of one model route.

An executor is bound to a primary "provider/model" route and optional
fallback routes. Each call builds a fresh Agno model from the route
prefix, applies per-request credentials, sampling options, tools and the
structured-output contract, then runs it buffered or streaming.

Vendor SDK and transport exceptions are mapped onto the ProviderError
hierarchy in base.py so callers can tell a timeout or DNS failure apart
from an error the vendor reported.

Route prefixes: openai, azure, anthropic, google, vertex, bedrock, groq,
ollama and openrouter. Unknown prefixes are sent through OpenRouter;
"mock/..." never leaves the process.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import httpx

from conductor.observability.logging import get_logger
from conductor.providers.llm.base import (
    AuthenticationError,
    ContentFilterError,
    LLMMessage,
    LLMResponse,
    LLMToolCall,
    ModelError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TokenUsage,
)
from conductor.providers.llm.tokens import count_tokens

if TYPE_CHECKING:
    from agno.agent import Agent

logger = get_logger(__name__)

# Providers that accept an OpenAI style response_format request parameter
OPENAI_COMPATIBLE = frozenset({"openai", "azure", "openrouter", "groq"})

CONNECTION_MARKERS = (
    "enotfound",
    "econnrefused",
    "getaddrinfo",
    "name or service not known",
    "connection refused",
    "fetch failed",
)

MODEL_MISSING_MARKERS = ("not found", "does not exist", "unknown model", "not enabled")


class LLMExecutor:
    """Executes LLM calls using Agno.

    Model string format:
        openai/gpt-4o -> OpenAIChat(id="gpt-4o")
        anthropic/claude-3-5-haiku-latest -> Claude(id="claude-3-5-haiku-latest")
        vertex/gemini-2.5-pro -> Gemini(id="gemini-2.5-pro", vertexai=True)
        azure/gpt-4o -> AzureOpenAI(id="gpt-4o")
        mock/test -> Mock response (for testing)

    Example:
        executor = LLMExecutor(model="openai/gpt-4o", step_name="intent_classifier")

        response = await executor.generate(
            messages=[LLMMessage(role="user", content="Hello")],
            max_tokens=10,
            temperature=0.0,
        )
    """

    def __init__(
        self,
        model: str,
        fallback_models: list[str] | None = None,
        timeout: float = 120.0,
        step_name: str | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            model: Primary model string (e.g., 'openai/gpt-4o')
            fallback_models: Models to try if primary fails
            timeout: Request timeout in seconds
            step_name: Call site name for logging
        """
        self._model = model
        self._fallback_models = fallback_models or []
        self._timeout = timeout
        self._step_name = step_name

    @property
    def model(self) -> str:
        """Primary model for this executor."""
        return self._model

    @property
    def step_name(self) -> str | None:
        return self._step_name

    async def generate(
        self,
        messages: list[LLMMessage],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tools: list[Any] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
        response_format: dict[str, Any] | None = None,
        credentials: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate text from messages.

        Uses primary model, falls back to fallback_models on failure.

        Args:
            messages: Conversation messages
            max_tokens: Maximum tokens to generate (None leaves the vendor default)
            temperature: Sampling temperature (None leaves the vendor default)
            tools: Agno tool objects the model may call
            tool_choice: Vendor tool choice ("auto", "required", or a function)
            response_format: JSON schema envelope the output must follow
            credentials: Per-request credentials (api_key, azure_*, vertex_*, bedrock_*)
            **kwargs: Extra model options (reasoning_effort, verbosity, ...)

        Returns:
            LLMResponse with generated content and metadata

        Raises:
            ProviderError: The last failure when every model failed
        """
        models_to_try = [self._model] + self._fallback_models
        last_error: ProviderError | None = None

        for model in models_to_try:
            try:
                return await self._generate_with_model(
                    model=model,
                    messages=messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    tools=tools,
                    tool_choice=tool_choice,
                    response_format=response_format,
                    credentials=credentials or {},
                    **kwargs,
                )

            except RateLimitError as e:
                logger.warning(
                    "executor_rate_limited",
                    model=model,
                    step=self._step_name,
                    error=str(e),
                )
                last_error = e

            except ProviderError as e:
                logger.warning(
                    "executor_provider_error",
                    model=model,
                    step=self._step_name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                last_error = e

        assert last_error is not None
        if len(models_to_try) == 1:
            raise last_error
        raise type(last_error)(
            f"All models failed for step {self._step_name}. "
            f"Tried: {models_to_try}. Last error: {last_error}"
        ) from last_error

    def generate_stream(
        self,
        messages: list[LLMMessage],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        tools: list[Any] | None = None,
        tool_choice: str | dict[str, Any] | None = None,
        response_format: dict[str, Any] | None = None,
        credentials: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        """Stream generated text.

        Note: Streaming doesn't support fallback - uses primary model only.
        """
        return self._generate_stream_impl(
            model=self._model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            tools=tools,
            tool_choice=tool_choice,
            response_format=response_format,
            credentials=credentials or {},
            **kwargs,
        )

    async def count_tokens(self, text: str) -> int:
        """Count tokens in text (cl100k_base, ~4 chars per token fallback)."""
        return count_tokens(text)

    # ========================================================================
    # Internal: Agno-based execution
    # ========================================================================

    def _create_agent(
        self,
        model: str,
        *,
        max_tokens: int | None,
        temperature: float | None,
        tools: list[Any] | None,
        tool_choice: str | dict[str, Any] | None,
        response_format: dict[str, Any] | None,
        credentials: dict[str, Any],
        options: dict[str, Any],
    ) -> Agent | None:
        """Build an Agno agent for one request.

        Credentials and sampling differ per block, so agents are not cached.
        Returns None for mock models.
        """
        agno_model = self._create_agno_model(
            model,
            max_tokens=max_tokens,
            temperature=temperature,
            response_format=response_format,
            credentials=credentials,
            options=options,
        )
        if agno_model is None:
            return None

        from agno.agent import Agent

        agent_kwargs: dict[str, Any] = {
            "model": agno_model,
            "markdown": False,
        }
        if tools:
            agent_kwargs["tools"] = tools
            if tool_choice is not None:
                agent_kwargs["tool_choice"] = tool_choice
        return Agent(**agent_kwargs)

    def _create_agno_model(
        self,
        model: str,
        *,
        max_tokens: int | None,
        temperature: float | None,
        response_format: dict[str, Any] | None,
        credentials: dict[str, Any],
        options: dict[str, Any],
    ) -> Any:
        """Create Agno model class from model string.

        Returns None for mock models.
        """
        provider_type, api_model = self._parse_model(model)

        request_params = None
        if response_format and provider_type in OPENAI_COMPATIBLE:
            request_params = {
                "response_format": {"type": "json_schema", "json_schema": response_format}
            }

        if provider_type == "openai":
            from agno.models.openai import OpenAIChat

            return OpenAIChat(
                id=api_model,
                **_compact(
                    api_key=credentials.get("api_key"),
                    temperature=temperature,
                    max_tokens=max_tokens,
                    reasoning_effort=options.get("reasoning_effort"),
                    verbosity=options.get("verbosity"),
                    request_params=request_params,
                ),
            )

        elif provider_type == "azure":
            from agno.models.azure import AzureOpenAI

            return AzureOpenAI(
                id=api_model,
                **_compact(
                    api_key=credentials.get("api_key"),
                    azure_endpoint=credentials.get("azure_endpoint"),
                    api_version=credentials.get("azure_api_version"),
                    temperature=temperature,
                    max_tokens=max_tokens,
                    request_params=request_params,
                ),
            )

        elif provider_type == "anthropic":
            from agno.models.anthropic import Claude

            return Claude(
                id=api_model,
                **_compact(
                    api_key=credentials.get("api_key"),
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
            )

        elif provider_type == "google":
            from agno.models.google import Gemini

            return Gemini(
                id=api_model,
                **_compact(
                    api_key=credentials.get("api_key"),
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                ),
            )

        elif provider_type == "vertex":
            from agno.models.google import Gemini
            from google.oauth2.credentials import Credentials

            access_token = credentials.get("vertex_access_token")
            return Gemini(
                id=api_model,
                vertexai=True,
                **_compact(
                    project_id=credentials.get("vertex_project"),
                    location=credentials.get("vertex_location"),
                    credentials=Credentials(token=access_token) if access_token else None,
                    temperature=temperature,
                    max_output_tokens=max_tokens,
                ),
            )

        elif provider_type == "bedrock":
            from agno.models.aws import AwsBedrock

            return AwsBedrock(
                id=api_model,
                **_compact(
                    aws_access_key_id=credentials.get("bedrock_access_key_id"),
                    aws_secret_access_key=credentials.get("bedrock_secret_key"),
                    aws_region=credentials.get("bedrock_region"),
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
            )

        elif provider_type == "groq":
            from agno.models.groq import Groq

            return Groq(
                id=api_model,
                **_compact(
                    api_key=credentials.get("api_key"),
                    temperature=temperature,
                    max_tokens=max_tokens,
                    request_params=request_params,
                ),
            )

        elif provider_type == "ollama":
            from agno.models.ollama import Ollama

            return Ollama(id=api_model)

        elif provider_type == "mock":
            return None

        else:
            # Default to OpenRouter for unknown prefixes
            from agno.models.openrouter import OpenRouter

            logger.warning(
                "unknown_provider_defaulting_to_openrouter",
                model=model,
                provider_type=provider_type,
            )
            return OpenRouter(
                id=model if provider_type != "openrouter" else api_model,
                **_compact(api_key=credentials.get("api_key"), request_params=request_params),
            )

    def _format_messages_for_agno(self, messages: list[LLMMessage]) -> str:
        """Convert our messages to Agno input format.

        Agno agents take a string input. For multi-turn, we format as conversation.
        System messages are handled separately by Agno.
        """
        turns = [m for m in messages if m.role != "system"]

        if len(turns) == 1:
            return turns[0].content

        parts = []
        for msg in turns:
            if msg.role == "user":
                parts.append(f"User: {msg.content}")
            elif msg.role == "assistant":
                parts.append(f"Assistant: {msg.content}")
        return "\n\n".join(parts)

    def _get_system_prompt(
        self,
        messages: list[LLMMessage],
        provider_type: str,
        response_format: dict[str, Any] | None,
    ) -> str | None:
        """Extract the system prompt, adding a JSON contract where needed."""
        system_prompt = next((m.content for m in messages if m.role == "system"), None)
        if not response_format or provider_type in OPENAI_COMPATIBLE:
            return system_prompt

        schema_str = json.dumps(response_format.get("schema", response_format), indent=2)
        contract = (
            "Respond with valid JSON matching this schema:\n"
            f"```json\n{schema_str}\n```\n\n"
            "Output only the JSON, no other text."
        )
        return f"{system_prompt}\n\n{contract}" if system_prompt else contract

    async def _generate_with_model(
        self,
        model: str,
        messages: list[LLMMessage],
        max_tokens: int | None,
        temperature: float | None,
        tools: list[Any] | None,
        tool_choice: str | dict[str, Any] | None,
        response_format: dict[str, Any] | None,
        credentials: dict[str, Any],
        **options: Any,
    ) -> LLMResponse:
        """Execute generation with a specific model using Agno."""
        provider_type, _ = self._parse_model(model)

        agent = self._create_agent(
            model,
            max_tokens=max_tokens,
            temperature=temperature,
            tools=tools,
            tool_choice=tool_choice,
            response_format=response_format,
            credentials=credentials,
            options=options,
        )
        if agent is None:
            return self._mock_response(model, messages)

        input_text = self._format_messages_for_agno(messages)
        system_prompt = self._get_system_prompt(messages, provider_type, response_format)
        if system_prompt:
            agent.instructions = [system_prompt]

        start_time = time.perf_counter()

        try:
            run_response = await asyncio.wait_for(agent.arun(input_text), self._timeout)
        except Exception as e:
            raise self._translate_error(e) from e

        status = getattr(run_response, "status", None)
        if status is not None and str(getattr(status, "value", status)).lower() == "error":
            raise self._translate_error(ProviderError(str(run_response.content)))

        content = run_response.content if run_response.content else ""
        if not isinstance(content, str):
            content = json.dumps(content) if isinstance(content, dict | list) else str(content)

        latency_ms = (time.perf_counter() - start_time) * 1000

        metadata: dict[str, Any] = {
            "latency_ms": latency_ms,
            "model_requested": model,
            "provider": provider_type,
        }
        run_id = getattr(run_response, "run_id", None)
        if run_id:
            metadata["run_id"] = run_id

        response = LLMResponse(
            content=content,
            model=model,
            finish_reason="stop",
            usage=_usage_from_run(run_response),
            tool_calls=_tool_calls_from_run(run_response),
            metadata=metadata,
        )

        logger.debug(
            "executor_generate_complete",
            model=model,
            step=self._step_name,
            latency_ms=round(latency_ms, 2),
            content_length=len(content),
            tool_calls=len(response.tool_calls),
        )

        return response

    async def _generate_stream_impl(
        self,
        model: str,
        messages: list[LLMMessage],
        max_tokens: int | None,
        temperature: float | None,
        tools: list[Any] | None,
        tool_choice: str | dict[str, Any] | None,
        response_format: dict[str, Any] | None,
        credentials: dict[str, Any],
        **options: Any,
    ) -> AsyncIterator[str]:
        """Stream implementation using Agno."""
        provider_type, _ = self._parse_model(model)

        agent = self._create_agent(
            model,
            max_tokens=max_tokens,
            temperature=temperature,
            tools=tools,
            tool_choice=tool_choice,
            response_format=response_format,
            credentials=credentials,
            options=options,
        )
        if agent is None:
            yield f"Mock streaming response for {model}"
            return

        input_text = self._format_messages_for_agno(messages)
        system_prompt = self._get_system_prompt(messages, provider_type, response_format)
        if system_prompt:
            agent.instructions = [system_prompt]

        yielded = False
        try:
            async for chunk in agent.arun(input_text, stream=True):
                if hasattr(chunk, "content") and isinstance(chunk.content, str) and chunk.content:
                    yielded = True
                    yield chunk.content
        except Exception as e:
            logger.error("streaming_failed", model=model, error=str(e))
            if yielded:
                raise self._translate_error(e) from e
            # Nothing sent yet: fall back to non-streaming
            response = await self._generate_with_model(
                model,
                messages,
                max_tokens,
                temperature,
                tools,
                tool_choice,
                response_format,
                credentials,
                **options,
            )
            yield response.content

    def _translate_error(self, error: Exception) -> ProviderError:
        """Map an SDK or transport exception onto the provider error types."""
        if isinstance(error, (ProviderTimeoutError, ProviderConnectionError)):
            return error

        name = type(error).__name__.lower()
        message = str(error)
        lowered = message.lower()

        if (
            isinstance(error, (TimeoutError, httpx.TimeoutException))
            or "timeout" in name
            or "timed out" in lowered
        ):
            return ProviderTimeoutError(message or "Request timed out")
        if (
            isinstance(error, (httpx.ConnectError, ConnectionError))
            or "connection" in name
            or any(marker in lowered for marker in CONNECTION_MARKERS)
        ):
            return ProviderConnectionError(message or "Connection failed")
        if isinstance(error, ProviderError):
            return error
        if "rate" in lowered and "limit" in lowered:
            return RateLimitError(f"Rate limited: {message}")
        if "401" in lowered or "api key" in lowered or "authentication" in name:
            return AuthenticationError(message)
        if "content" in lowered and ("filter" in lowered or "safety" in lowered):
            return ContentFilterError(message)
        if "model" in lowered and any(marker in lowered for marker in MODEL_MISSING_MARKERS):
            return ModelError(message)
        return ProviderError(message)

    def _mock_response(self, model: str, messages: list[LLMMessage]) -> LLMResponse:  # noqa: ARG002
        """Generate mock response for testing."""
        return LLMResponse(
            content=f"Mock response for {model}",
            model=model,
            finish_reason="stop",
            usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
            metadata={},
        )

    def _parse_model(self, model: str) -> tuple[str, str]:
        """Parse model string into (provider_type, api_model).

        Examples:
            "openrouter/anthropic/claude-3-haiku" -> ("openrouter", "anthropic/claude-3-haiku")
            "anthropic/claude-3-haiku" -> ("anthropic", "claude-3-haiku")
            "vertex/gemini-2.5-pro" -> ("vertex", "gemini-2.5-pro")
            "mock/test" -> ("mock", "test")
        """
        parts = model.split("/")

        if len(parts) >= 3 and parts[0] == "openrouter":
            return "openrouter", "/".join(parts[1:])
        elif len(parts) >= 2:
            return parts[0], "/".join(parts[1:])
        else:
            return "mock", model


def _compact(**kwargs: Any) -> dict[str, Any]:
    """Drop unset options so vendor defaults apply."""
    return {key: value for key, value in kwargs.items() if value is not None}


def _usage_from_run(run_response: Any) -> TokenUsage | None:
    """Read token usage from an Agno run result.

    Agno reports metrics either as an object with integer counters or as
    a mapping of per-message lists.
    """
    metrics = getattr(run_response, "metrics", None)
    if metrics is None:
        return None

    def read(key: str) -> int:
        value = metrics.get(key) if isinstance(metrics, dict) else getattr(metrics, key, None)
        if isinstance(value, list):
            return int(sum(v or 0 for v in value))
        return int(value or 0)

    prompt = read("input_tokens")
    completion = read("output_tokens")
    total = read("total_tokens") or prompt + completion
    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def _tool_calls_from_run(run_response: Any) -> list[LLMToolCall]:
    calls: list[LLMToolCall] = []
    for tool in getattr(run_response, "tools", None) or []:
        if isinstance(tool, dict):
            name = tool.get("tool_name")
            args = tool.get("tool_args")
            result = tool.get("content", tool.get("result"))
            metrics = tool.get("metrics")
        else:
            name = getattr(tool, "tool_name", None)
            args = getattr(tool, "tool_args", None)
            result = getattr(tool, "result", None)
            metrics = getattr(tool, "metrics", None)
        if not name:
            continue
        duration = getattr(metrics, "duration", None) if metrics is not None else None
        calls.append(
            LLMToolCall(
                name=name,
                arguments=args or {},
                result=result,
                duration_ms=duration * 1000 if isinstance(duration, int | float) else None,
            )
        )
    return calls


def create_executor(
    model: str,
    fallback_models: list[str] | None = None,
    step_name: str | None = None,
    timeout: float = 120.0,
) -> LLMExecutor:
    """Create an LLMExecutor with the given configuration."""
    return LLMExecutor(
        model=model,
        fallback_models=fallback_models,
        step_name=step_name,
        timeout=timeout,
    )
