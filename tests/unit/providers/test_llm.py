"""Tests for the LLM executor layer."""

import httpx
import pytest

from conductor.providers.llm import (
    AuthenticationError,
    ContentFilterError,
    LLMExecutor,
    LLMMessage,
    LLMResponse,
    MockLLMExecutor,
    ModelError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    count_tokens,
    create_executor,
    estimate_tokens,
)
from conductor.providers.llm.executor import _tool_calls_from_run, _usage_from_run


class TestMockLLMExecutor:
    """Tests for MockLLMExecutor."""

    @pytest.fixture
    def executor(self) -> MockLLMExecutor:
        return MockLLMExecutor(default_response="Test response")

    @pytest.mark.asyncio
    async def test_generate_returns_default_response(self, executor):
        """Should return default response."""
        response = await executor.generate([LLMMessage(role="user", content="Hello")])

        assert isinstance(response, LLMResponse)
        assert response.content == "Test response"
        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_generate_custom_response(self, executor):
        """Should return custom response for matching content."""
        executor.set_response("What is 2+2?", "The answer is 4.")
        response = await executor.generate([LLMMessage(role="user", content="What is 2+2?")])
        assert response.content == "The answer is 4."

    @pytest.mark.asyncio
    async def test_generate_tracks_call_history(self, executor):
        """Should track call history, extra options included."""
        await executor.generate(
            [LLMMessage(role="user", content="Hello")], temperature=0.5, verbosity="low"
        )

        assert len(executor.call_history) == 1
        assert executor.call_history[0]["temperature"] == 0.5
        assert executor.call_history[0]["kwargs"] == {"verbosity": "low"}

    @pytest.mark.asyncio
    async def test_generate_raises_configured_error(self):
        """Should raise the configured error."""
        executor = MockLLMExecutor(error=ProviderTimeoutError("slow"))
        with pytest.raises(ProviderTimeoutError):
            await executor.generate([LLMMessage(role="user", content="Hello")])

    @pytest.mark.asyncio
    async def test_generate_stream(self):
        """Should stream response in chunks."""
        executor = MockLLMExecutor(default_response="Hello World!", stream_chunk_size=5)

        chunks = [chunk async for chunk in executor.generate_stream(
            [LLMMessage(role="user", content="Hi")]
        )]

        assert chunks == ["Hello", " Worl", "d!"]


class TestLLMExecutor:
    """Routing and error translation of the Agno-backed executor."""

    @pytest.mark.parametrize(
        ("model", "expected"),
        [
            ("openai/gpt-4o", ("openai", "gpt-4o")),
            ("vertex/gemini-2.5-pro", ("vertex", "gemini-2.5-pro")),
            ("openrouter/anthropic/claude-3-haiku", ("openrouter", "anthropic/claude-3-haiku")),
            ("plain", ("mock", "plain")),
        ],
    )
    def test_parse_model(self, model: str, expected: tuple[str, str]) -> None:
        assert LLMExecutor(model=model)._parse_model(model) == expected

    @pytest.mark.asyncio
    async def test_mock_model_needs_no_vendor(self) -> None:
        """mock/* models answer without building an Agno agent."""
        executor = create_executor("mock/test", step_name="unit")
        response = await executor.generate([LLMMessage(role="user", content="Hi")])
        assert response.content == "Mock response for mock/test"
        assert executor.step_name == "unit"

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (TimeoutError(), ProviderTimeoutError),
            (httpx.ReadTimeout("read timed out"), ProviderTimeoutError),
            (httpx.ConnectError("boom"), ProviderConnectionError),
            (Exception("getaddrinfo ENOTFOUND api.openai.com"), ProviderConnectionError),
            (Exception("Rate limit exceeded"), RateLimitError),
            (Exception("401 invalid api key"), AuthenticationError),
            (Exception("content blocked by safety filter"), ContentFilterError),
            (Exception("The model `gpt-9` does not exist"), ModelError),
            (Exception("model overloaded"), ProviderError),
        ],
    )
    def test_translate_error(self, error: Exception, expected: type) -> None:
        translated = LLMExecutor(model="openai/gpt-4o")._translate_error(error)
        assert type(translated) is expected


class TestRunParsing:
    """Reading usage and tool calls from Agno run results."""

    def test_usage_from_list_metrics(self) -> None:
        class Run:
            metrics = {"input_tokens": [10, 5], "output_tokens": [3], "total_tokens": [18]}

        usage = _usage_from_run(Run())
        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (15, 3, 18)

    def test_usage_total_derived(self) -> None:
        class Metrics:
            input_tokens = 7
            output_tokens = 2
            total_tokens = 0

        class Run:
            metrics = Metrics()

        assert _usage_from_run(Run()).total_tokens == 9

    def test_no_metrics(self) -> None:
        assert _usage_from_run(object()) is None

    def test_tool_calls(self) -> None:
        class Run:
            tools = [
                {"tool_name": "custom_lookup", "tool_args": {"q": "x"}, "content": "found"},
                {"tool_args": {}},
            ]

        calls = _tool_calls_from_run(Run())
        assert len(calls) == 1
        assert calls[0].name == "custom_lookup"
        assert calls[0].arguments == {"q": "x"}
        assert calls[0].result == "found"


class TestTokens:
    """Token counting for memory budgeting."""

    def test_empty_text(self) -> None:
        assert count_tokens("") == 0
        assert estimate_tokens("") == 0

    def test_estimate(self) -> None:
        assert estimate_tokens("abcdefgh") == 2
        assert estimate_tokens("ab") == 1

    def test_count_is_positive_and_stable(self) -> None:
        text = "Previous conversation:\nUser: hello there"
        assert count_tokens(text) > 0
        assert count_tokens(text) == count_tokens(text)
