"""Tests for AgentBlockHandler."""

import json

import pytest

from conductor.domain.errors import ConfigurationError, PermissionDenied, ProviderModelError
from conductor.domain.execution import AgentInputs, BufferedResult, StreamingResult
from conductor.domain.messages import Message
from conductor.domain.tools import CapabilityKind
from conductor.providers.llm import MockLLMExecutor
from conductor.providers.llm.base import RateLimitError

PERSON_FORMAT = {
    "name": "person",
    "schema": {
        "type": "object",
        "properties": {"name": {"type": "string"}, "age": {"type": "integer"}},
        "required": ["name", "age"],
        "additionalProperties": False,
    },
}


def _chat_inputs(**overrides) -> dict:
    values = {
        "model": "gpt-4o",
        "system_prompt": "Be terse.",
        "user_prompt": "Make it shorter",
        "memory_type": "conversation",
        "conversation_id": "c-1",
    }
    values.update(overrides)
    return values


@pytest.fixture
def prior_turn(execution_log, memory_store) -> None:
    execution_log.record("c-1", "Summarize the Q3 report", "Revenue grew 12% in Q3.")
    memory_store.add_turn("user-1", "c-1", Message(role="user", content="Summarize the Q3 report"))
    memory_store.add_turn("user-1", "c-1", Message(role="assistant", content="Revenue grew 12% in Q3."))


class TestBufferedExecution:
    """Single buffered provider call."""

    @pytest.mark.asyncio
    async def test_without_memory(self, make_handler, make_ctx, backend) -> None:
        handler = make_handler(with_memory=False)

        result = await handler.execute_agent_block(
            {"model": "gpt-4o", "system_prompt": "Be terse.", "user_prompt": "hi"}, make_ctx()
        )

        assert isinstance(result, BufferedResult)
        assert result.content == "Backend reply"
        assert result.block_id == "agent-1"
        assert backend.last_request.messages == (
            Message(role="system", content="Be terse."),
            Message(role="user", content="hi"),
        )
        assert backend.last_request.stream is False

    @pytest.mark.asyncio
    async def test_accepts_model_inputs(self, make_handler, make_ctx, backend, settings) -> None:
        handler = make_handler(with_memory=False)

        await handler.execute_agent_block(AgentInputs(user_prompt="hi"), make_ctx())

        assert backend.last_request.model == settings.agent.default_model
        assert backend.last_request.messages[0].content == settings.agent.default_system_prompt

    @pytest.mark.asyncio
    async def test_provider_error_translated(self, make_handler, make_ctx, backend) -> None:
        backend.error = RateLimitError("Rate limit reached")
        handler = make_handler(with_memory=False)

        with pytest.raises(ProviderModelError, match="Rate limit reached"):
            await handler.execute_agent_block({"user_prompt": "hi"}, make_ctx())


class TestPreflight:
    """Configuration errors surface before any external call."""

    @pytest.mark.asyncio
    async def test_no_prompt(self, make_handler, make_ctx, backend, server_registry, execution_log) -> None:
        handler = make_handler()

        with pytest.raises(ConfigurationError, match="No messages to send to LLM"):
            await handler.execute_agent_block(
                {"memory_type": "conversation", "conversation_id": "c-1"}, make_ctx()
            )

        assert backend.requests == []
        assert server_registry.calls == 0
        assert execution_log.lookups == []

    @pytest.mark.asyncio
    async def test_malformed_inputs(self, make_handler, make_ctx, backend, memory_store) -> None:
        handler = make_handler()

        with pytest.raises(ConfigurationError, match="Invalid agent block inputs") as exc_info:
            await handler.execute_agent_block({"user_prompt": "hi", "tools": [{"title": "x"}]}, make_ctx())

        assert exc_info.value.details["errors"]
        assert backend.requests == []
        assert memory_store.appended == []

    @pytest.mark.asyncio
    async def test_invalid_temperature(self, make_handler, make_ctx, backend, memory_store) -> None:
        handler = make_handler()

        with pytest.raises(ConfigurationError, match="Invalid temperature"):
            await handler.execute_agent_block(_chat_inputs(temperature="hot"), make_ctx())

        assert backend.requests == []
        assert memory_store.appended == []

    @pytest.mark.asyncio
    async def test_conversation_id_too_long(self, make_handler, make_ctx, backend) -> None:
        handler = make_handler()

        with pytest.raises(ConfigurationError, match="Conversation ID too long"):
            await handler.execute_agent_block(_chat_inputs(conversation_id="c" * 256), make_ctx())
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_permission_denied(self, make_handler, make_ctx, backend, permissions) -> None:
        permissions.denied = {CapabilityKind.REMOTE_TOOLS}
        handler = make_handler()
        inputs = _chat_inputs(
            tools=[{"kind": "remote-discoverable", "server_id": "srv-1", "tool_name": "search"}]
        )

        with pytest.raises(PermissionDenied):
            await handler.execute_agent_block(inputs, make_ctx())
        assert backend.requests == []


class TestMemory:
    """Retrieval, assembly and persistence of conversational memory."""

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("prior_turn")
    async def test_run_turn_persisted(self, make_handler, make_ctx, backend, memory_store, classifier) -> None:
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(), make_ctx())

        assert result.skipped is False
        assert len(classifier.call_history) == 1
        user_message = backend.last_request.messages[-1]
        assert user_message.content.startswith("Make it shorter\nPrevious conversation:")
        assert "Revenue grew 12% in Q3." in user_message.content

        user, reply = memory_store.appended
        assert user[0] == Message(role="user", content="Make it shorter")
        assert reply[0] == Message(role="assistant", content="Backend reply")
        assert reply[2] == user[0]
        assert user[1].conversation_id == "c-1"

    @pytest.mark.asyncio
    async def test_facts_in_system_prompt(self, make_handler, make_ctx, backend, memory_store) -> None:
        memory_store.add_fact("user-1", "Prefers answers in French")
        handler = make_handler()

        await handler.execute_agent_block(_chat_inputs(), make_ctx())

        system = backend.last_request.messages[0].content
        assert system.startswith("Be terse.\n\n")
        assert "- Prefers answers in French" in system

    @pytest.mark.asyncio
    async def test_other_memory_modes_enable_memory(self, make_handler, make_ctx, memory_store) -> None:
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(memory_type="sliding_window"), make_ctx())

        assert result.content == "Backend reply"
        assert [entry[0].role for entry in memory_store.appended] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_memory_off_for_other_triggers(self, make_handler, make_ctx, memory_store, classifier) -> None:
        handler = make_handler()

        await handler.execute_agent_block(_chat_inputs(), make_ctx(trigger_type="api"))

        assert memory_store.appended == []
        assert classifier.call_history == []

    @pytest.mark.asyncio
    async def test_no_conversation_id_skips_gate(self, make_handler, make_ctx, memory_store, execution_log) -> None:
        handler = make_handler()

        await handler.execute_agent_block(_chat_inputs(conversation_id=None), make_ctx())

        assert execution_log.lookups == []
        assert [entry[0].role for entry in memory_store.appended] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_memory_failures_do_not_fail(self, make_handler, make_ctx, memory_store) -> None:
        memory_store.fail_search = True
        memory_store.fail_append = True
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(), make_ctx())

        assert result.content == "Backend reply"


class TestSkip:
    """Intent gate answers from the previous turn."""

    @pytest.fixture
    def classifier(self) -> MockLLMExecutor:
        return MockLLMExecutor(default_response="SKIP")

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("prior_turn")
    async def test_skip_returns_reply_without_provider_call(
        self, make_handler, make_ctx, backend, memory_store
    ) -> None:
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(), make_ctx(stream=True, selected_outputs=["agent-1"]))

        assert isinstance(result, BufferedResult)
        assert result.skipped is True
        assert result.content == "Synthesized reply"
        assert backend.requests == []
        assert [(m.role, m.content) for m, _, _ in memory_store.appended] == [
            ("user", "Make it shorter"),
            ("assistant", "Synthesized reply"),
        ]

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("prior_turn")
    async def test_skip_survives_persistence_failure(self, make_handler, make_ctx, memory_store) -> None:
        memory_store.fail_append = True
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(), make_ctx())
        assert result.content == "Synthesized reply"

    @pytest.mark.asyncio
    async def test_no_prior_turn_runs(self, make_handler, make_ctx, backend, classifier) -> None:
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(), make_ctx())

        assert result.skipped is False
        assert classifier.call_history == []
        assert len(backend.requests) == 1


class TestStructuredOutput:
    """Buffered results validated against the response format."""

    @pytest.mark.asyncio
    async def test_structured_output_filtered(self, make_handler, make_ctx, backend) -> None:
        backend.content = json.dumps({"name": "Ada", "age": 36, "email": "ada@example.com"})
        handler = make_handler(with_memory=False)

        result = await handler.execute_agent_block(
            {"user_prompt": "Who?", "response_format": PERSON_FORMAT}, make_ctx()
        )

        assert result.structured_output == {"name": "Ada", "age": 36}
        output = result.to_output()
        assert output["name"] == "Ada"
        assert "email" not in output
        assert "content" not in output
        assert backend.last_request.response_format.name == "person"

    @pytest.mark.asyncio
    async def test_malformed_output_warns(self, make_handler, make_ctx, backend) -> None:
        backend.content = "Ada, 36"
        handler = make_handler(with_memory=False)

        result = await handler.execute_agent_block(
            {"user_prompt": "Who?", "response_format": json.dumps(PERSON_FORMAT)}, make_ctx()
        )

        output = result.to_output()
        assert output["content"] == "Ada, 36"
        assert output["_responseFormatWarning"].startswith("LLM did not adhere")


class TestStreaming:
    """Streaming results and deferred persistence."""

    @pytest.fixture
    def stream_ctx(self, make_ctx):
        return make_ctx(stream=True, selected_outputs=["agent-1_content"])

    @pytest.mark.asyncio
    async def test_full_drain_persists(self, make_handler, stream_ctx, backend, memory_store) -> None:
        backend.chunks = ["Hel", "lo ", "world"]
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(), stream_ctx)

        assert isinstance(result, StreamingResult)
        assert result.execution.block_id == "agent-1"
        assert [chunk async for chunk in result.stream] == ["Hel", "lo ", "world"]
        assert memory_store.appended[-1][0] == Message(role="assistant", content="Hello world")

    @pytest.mark.asyncio
    async def test_abandoned_stream_not_persisted(self, make_handler, stream_ctx, backend, memory_store) -> None:
        backend.chunks = ["a", "b", "c", "d", "e"]
        handler = make_handler()

        result = await handler.execute_agent_block(_chat_inputs(), stream_ctx)
        assert await anext(result.stream) == "a"
        assert await anext(result.stream) == "b"
        await result.stream.aclose()

        assert backend.chunks_sent == 2
        assert [m.role for m, _, _ in memory_store.appended] == ["user"]

    @pytest.mark.asyncio
    async def test_unselected_block_is_buffered(self, make_handler, make_ctx) -> None:
        handler = make_handler()

        result = await handler.execute_agent_block(
            _chat_inputs(), make_ctx(stream=True, selected_outputs=["agent-2"])
        )
        assert isinstance(result, BufferedResult)
