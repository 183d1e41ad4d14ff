"""Tests for the intent gate."""

import asyncio
from typing import Any

import pytest

from conductor.agent.intent import Err, IntentGate, Ok, attempt
from conductor.agent.stores import InMemoryExecutionLog
from conductor.config.models import IntentGateConfig
from conductor.domain.errors import IntentGateFailure
from conductor.domain.execution import IntentDecision
from conductor.domain.memory import MemoryRecord, MemoryScope
from conductor.domain.messages import Message
from conductor.memory.retrieval import MemoryRetriever
from conductor.memory.stores import InMemoryMemoryStore
from conductor.providers.llm import LLMMessage, LLMResponse, MockLLMExecutor, ProviderError


class SlowExecutor(MockLLMExecutor):
    """Answers after a delay."""

    async def generate(self, messages: list[LLMMessage], **kwargs: Any) -> LLMResponse:
        await asyncio.sleep(1)
        return await super().generate(messages, **kwargs)


@pytest.fixture
def scope() -> MemoryScope:
    return MemoryScope(user_id="user-1", conversation_id="c-1")


@pytest.fixture
def log() -> InMemoryExecutionLog:
    log = InMemoryExecutionLog()
    log.record("c-1", "Summarize the Q3 report", "Revenue grew 12% in Q3.")
    return log


@pytest.fixture
def store() -> InMemoryMemoryStore:
    store = InMemoryMemoryStore()
    store.add_turn("user-1", "c-1", Message(role="user", content="Summarize the Q3 report"))
    return store


def _gate(
    classifier: MockLLMExecutor,
    responder: MockLLMExecutor,
    log: InMemoryExecutionLog,
    store: InMemoryMemoryStore,
    **config: Any,
) -> IntentGate:
    return IntentGate(
        classifier=classifier,
        responder=responder,
        execution_log=log,
        retriever=MemoryRetriever(store),
        config=IntentGateConfig(**config),
    )


class TestResult:
    """Ok/Err combinators."""

    def test_ok(self) -> None:
        assert Ok(2).map(lambda v: v * 2).unwrap_or_else(lambda e: -1) == 4

    def test_err(self) -> None:
        err = Err(ValueError("x"))
        assert err.map(lambda v: v * 2).unwrap_or_else(lambda e: str(e)) == "x"

    @pytest.mark.asyncio
    async def test_attempt_captures(self) -> None:
        async def boom() -> int:
            raise ValueError("boom")

        result = await attempt(boom())
        assert result.is_ok is False
        assert isinstance(result.error, ValueError)


class TestRunWithoutClassifier:
    """Cases decided before any model call."""

    @pytest.mark.asyncio
    async def test_disabled(self, log, store, scope) -> None:
        classifier = MockLLMExecutor("SKIP")
        verdict = await _gate(classifier, MockLLMExecutor(), log, store, enabled=False).evaluate(
            "Make it shorter", scope, token_limit=1000
        )
        assert verdict.decision == IntentDecision.RUN
        assert log.lookups == []

    @pytest.mark.asyncio
    async def test_no_conversation_id(self, log, store) -> None:
        verdict = await _gate(MockLLMExecutor("SKIP"), MockLLMExecutor(), log, store).evaluate(
            "Make it shorter", MemoryScope(user_id="user-1"), token_limit=1000
        )
        assert verdict.should_run
        assert log.lookups == []

    @pytest.mark.asyncio
    async def test_no_prior_turn(self, store, scope) -> None:
        classifier = MockLLMExecutor("SKIP")
        verdict = await _gate(classifier, MockLLMExecutor(), InMemoryExecutionLog(), store).evaluate(
            "Make it shorter", scope, token_limit=1000
        )

        assert verdict.should_run
        assert verdict.failure is None
        assert verdict.memories is None
        assert classifier.call_history == []

    @pytest.mark.asyncio
    async def test_incomplete_prior_turn_ignored(self, store, scope) -> None:
        log = InMemoryExecutionLog()
        log.record("c-1", "question", "answer", status="failed")
        classifier = MockLLMExecutor("SKIP")

        verdict = await _gate(classifier, MockLLMExecutor(), log, store).evaluate(
            "Make it shorter", scope, token_limit=1000
        )
        assert verdict.should_run
        assert classifier.call_history == []

    @pytest.mark.asyncio
    async def test_lookup_failure_degrades_to_run(self, log, store, scope) -> None:
        log.error = RuntimeError("database unavailable")
        classifier = MockLLMExecutor("SKIP")

        verdict = await _gate(classifier, MockLLMExecutor(), log, store).evaluate(
            "Make it shorter", scope, token_limit=1000
        )

        assert verdict.should_run
        assert isinstance(verdict.failure, IntentGateFailure)
        assert classifier.call_history == []


class TestClassifier:
    """RUN/SKIP decisions from the classifier model."""

    @pytest.mark.asyncio
    async def test_classifier_request(self, log, store, scope) -> None:
        classifier = MockLLMExecutor("RUN")
        verdict = await _gate(classifier, MockLLMExecutor(), log, store).evaluate(
            "Make it shorter", scope, token_limit=1000
        )

        assert verdict.should_run
        assert verdict.failure is None
        assert [r.content for r in verdict.memories] == ["Summarize the Q3 report"]
        call = classifier.call_history[0]
        assert call["temperature"] == 0.0
        assert call["max_tokens"] == 10
        prompt = call["messages"][1].content
        assert "Make it shorter" in prompt
        assert "User: Summarize the Q3 report" in prompt
        assert "Assistant: Revenue grew 12% in Q3." in prompt
        assert "Previous conversation:" in prompt

    @pytest.mark.asyncio
    async def test_classifier_error_is_run(self, log, store, scope) -> None:
        classifier = MockLLMExecutor(error=ProviderError("overloaded"))
        responder = MockLLMExecutor()

        verdict = await _gate(classifier, responder, log, store).evaluate(
            "Make it shorter", scope, token_limit=1000
        )

        assert verdict.should_run
        assert verdict.reply is None
        assert isinstance(verdict.failure, IntentGateFailure)
        assert verdict.memories is not None
        assert responder.call_history == []

    @pytest.mark.asyncio
    async def test_classifier_timeout_is_run(self, log, store, scope) -> None:
        verdict = await _gate(
            SlowExecutor("SKIP"), MockLLMExecutor(), log, store, classifier_timeout=0.01
        ).evaluate("Make it shorter", scope, token_limit=1000)

        assert verdict.should_run
        assert verdict.failure is not None

    @pytest.mark.asyncio
    async def test_unexpected_answer_is_run(self, log, store, scope) -> None:
        verdict = await _gate(MockLLMExecutor("SKIP, probably"), MockLLMExecutor(), log, store).evaluate(
            "Make it shorter", scope, token_limit=1000
        )
        assert verdict.should_run
        assert verdict.failure is None


class TestSkip:
    """Reply synthesis on SKIP."""

    @pytest.mark.asyncio
    async def test_skip_synthesizes_reply(self, log, store, scope) -> None:
        responder = MockLLMExecutor("  Revenue grew 12%.  ")
        facts = [MemoryRecord(role="user", content="prefers bullet points")]

        verdict = await _gate(MockLLMExecutor(" skip "), responder, log, store).evaluate(
            "Make it shorter", scope, token_limit=1000, facts=facts
        )

        assert verdict.decision == IntentDecision.SKIP
        assert verdict.reply == "Revenue grew 12%."
        prompt = responder.call_history[0]["messages"][1].content
        assert "LAST CONVERSATION (MOST RELEVANT):" in prompt
        assert "User: prefers bullet points" in prompt
        assert prompt.rstrip().endswith("Please provide a helpful answer based on the context above.")
        assert responder.call_history[0]["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_synthesis_failure_reply(self, log, store, scope) -> None:
        verdict = await _gate(
            MockLLMExecutor("SKIP"), MockLLMExecutor(error=ProviderError("down")), log, store
        ).evaluate("Make it shorter", scope, token_limit=1000)

        assert verdict.decision == IntentDecision.SKIP
        assert verdict.reply == IntentGateConfig().failed_reply

    @pytest.mark.asyncio
    async def test_empty_synthesis_reply(self, log, store, scope) -> None:
        verdict = await _gate(MockLLMExecutor("SKIP"), MockLLMExecutor("   "), log, store).evaluate(
            "Make it shorter", scope, token_limit=1000
        )
        assert verdict.reply == IntentGateConfig().empty_reply
