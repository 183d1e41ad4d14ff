"""Scripted LLM executor for tests and local runs."""

from collections.abc import AsyncIterator
from typing import Any

from conductor.providers.llm.base import LLMMessage, LLMResponse, TokenUsage
from conductor.providers.llm.executor import LLMExecutor


class MockLLMExecutor(LLMExecutor):
    """LLMExecutor that answers from a script instead of a vendor.

    Responses are matched on the content of the last message; unmatched
    calls get the default response. Setting ``error`` makes every call
    raise it.
    """

    def __init__(
        self,
        default_response: str = "Mock response",
        responses: dict[str, str] | None = None,
        stream_chunk_size: int = 10,
        error: Exception | None = None,
        step_name: str | None = None,
    ):
        super().__init__(model="mock/test", step_name=step_name)
        self._default_response = default_response
        self._responses = responses or {}
        self._stream_chunk_size = stream_chunk_size
        self.error = error
        self._call_history: list[dict[str, Any]] = []

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """Calls made so far, for test assertions."""
        return self._call_history

    def set_response(self, trigger: str, response: str) -> None:
        """Answer messages whose content equals trigger with response."""
        self._responses[trigger] = response

    async def generate(
        self,
        messages: list[LLMMessage],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        self._call_history.append({
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "kwargs": kwargs,
        })
        if self.error is not None:
            raise self.error

        content = self._default_response
        if messages and messages[-1].content in self._responses:
            content = self._responses[messages[-1].content]

        prompt_tokens = sum(len(m.content) // 4 for m in messages)
        completion_tokens = len(content) // 4
        return LLMResponse(
            content=content,
            model=self.model,
            finish_reason="stop",
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )

    def generate_stream(
        self,
        messages: list[LLMMessage],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        return self._stream(messages, max_tokens=max_tokens, temperature=temperature, **kwargs)

    async def _stream(self, messages: list[LLMMessage], **kwargs: Any) -> AsyncIterator[str]:
        response = await self.generate(messages, **kwargs)
        content = response.content
        for i in range(0, len(content), self._stream_chunk_size):
            yield content[i:i + self._stream_chunk_size]
