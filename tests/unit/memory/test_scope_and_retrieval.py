"""Tests for memory scoping and retrieval."""

import pytest

from conductor.config.models import MemoryConfig
from conductor.domain.errors import ConfigurationError
from conductor.domain.execution import AgentInputs
from conductor.domain.memory import MemoryKind, MemoryRecord, MemoryScope
from conductor.domain.messages import Message
from conductor.memory.retrieval import MemoryRetriever, merge_records
from conductor.memory.scope import memory_scope_for
from conductor.memory.stores import InMemoryMemoryStore


def _record(record_id: str | None, score: float | None, content: str = "x") -> MemoryRecord:
    return MemoryRecord(id=record_id, role="user", content=content, score=score)


class TestMemoryScopeFor:
    """When memory applies to an execution."""

    def test_disabled_memory(self, make_ctx) -> None:
        inputs = AgentInputs(user_prompt="hi")
        assert memory_scope_for(inputs, make_ctx(), MemoryConfig()) is None

    def test_requires_principal(self, make_ctx) -> None:
        inputs = AgentInputs(user_prompt="hi", memory_type="conversation")
        assert memory_scope_for(inputs, make_ctx(user_id=None), MemoryConfig()) is None

    def test_requires_configured_trigger(self, make_ctx) -> None:
        inputs = AgentInputs(user_prompt="hi", memory_type="conversation")
        assert memory_scope_for(inputs, make_ctx(trigger_type="api"), MemoryConfig()) is None

    def test_scope_fields(self, make_ctx) -> None:
        inputs = AgentInputs(user_prompt="hi", memory_type="conversation", conversation_id="c-1")
        scope = memory_scope_for(inputs, make_ctx(is_deployed=True), MemoryConfig())
        assert scope == MemoryScope(
            user_id="user-1",
            conversation_id="c-1",
            block_id="agent-1",
            workflow_id="wf-1",
            workspace_id="ws-1",
            chat_id="exec-1",
            deployed=True,
        )

    def test_chat_id_falls_back_to_workflow(self, make_ctx) -> None:
        inputs = AgentInputs(user_prompt="hi", memory_type="conversation")
        scope = memory_scope_for(inputs, make_ctx(execution_id=None), MemoryConfig())
        assert scope.chat_id == "wf-1"
        assert scope.conversation_id is None

    def test_conversation_id_too_long(self, make_ctx) -> None:
        inputs = AgentInputs(user_prompt="hi", memory_type="conversation", conversation_id="c" * 256)
        with pytest.raises(ConfigurationError, match="Conversation ID too long"):
            memory_scope_for(inputs, make_ctx(), MemoryConfig())


class TestMergeRecords:
    """De-duplication and ordering of search batches."""

    def test_orders_by_ascending_score(self) -> None:
        merged = merge_records([_record("a", 0.7), _record("b", 0.1)], [_record("c", 0.4)])
        assert [r.id for r in merged] == ["b", "c", "a"]

    def test_missing_score_sorts_as_one(self) -> None:
        merged = merge_records([_record("a", None), _record("b", 0.99), _record("c", 1.5)])
        assert [r.id for r in merged] == ["b", "a", "c"]

    def test_first_occurrence_wins(self) -> None:
        merged = merge_records([_record("a", 0.5, "scoped")], [_record("a", 0.1, "wide")])
        assert len(merged) == 1
        assert merged[0].content == "scoped"

    def test_records_without_id_are_kept(self) -> None:
        merged = merge_records([_record(None, 0.2)], [_record(None, 0.2)])
        assert len(merged) == 2


class TestMemoryRetriever:
    """Searches never fail the execution."""

    @pytest.fixture
    def store(self) -> InMemoryMemoryStore:
        store = InMemoryMemoryStore()
        store.add_fact("user-1", "prefers metric units")
        store.add_turn("user-1", "c-1", Message(role="user", content="weather in paris"))
        store.add_turn("user-1", "c-2", Message(role="assistant", content="paris is sunny"))
        store.add_turn("user-2", "c-1", Message(role="user", content="paris for someone else"))
        return store

    @pytest.fixture
    def scope(self) -> MemoryScope:
        return MemoryScope(user_id="user-1", conversation_id="c-1")

    @pytest.mark.asyncio
    async def test_facts_are_user_wide(self, store, scope) -> None:
        facts = await MemoryRetriever(store).facts("units", scope)
        assert [f.content for f in facts] == ["prefers metric units"]

    @pytest.mark.asyncio
    async def test_conversation_combines_scoped_and_user_wide(self, store, scope) -> None:
        records = await MemoryRetriever(store).conversation("paris weather", scope)
        contents = [r.content for r in records]
        assert contents == ["weather in paris", "paris is sunny"]

    @pytest.mark.asyncio
    async def test_search_failure_yields_nothing(self, store, scope) -> None:
        store.fail_search = True
        retriever = MemoryRetriever(store)
        assert await retriever.facts("units", scope) == []
        assert await retriever.conversation("paris", scope) == []

    @pytest.mark.asyncio
    async def test_limit_is_forwarded(self, store, scope) -> None:
        records = await MemoryRetriever(store, limit=1).conversation("paris", scope.without_conversation())
        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_kinds_kept_apart(self, store, scope) -> None:
        conversation = await store.search("units", MemoryKind.CONVERSATION, scope.without_conversation())
        assert all(r.content != "prefers metric units" for r in conversation)
