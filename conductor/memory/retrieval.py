"""Memory retrieval for prompt assembly and the intent gate."""

import asyncio

from conductor.domain.memory import MemoryKind, MemoryRecord, MemoryScope
from conductor.memory.store import MemoryStore
from conductor.observability.logging import get_logger
from conductor.observability.metrics import MEMORY_OPERATIONS

logger = get_logger(__name__)

MISSING_SCORE = 1.0


def merge_records(*batches: list[MemoryRecord]) -> list[MemoryRecord]:
    """Merge search batches: first occurrence of each id wins, lowest score first.

    Records without an id are never treated as duplicates. The sort is
    stable, so equal scores keep their batch order.
    """
    seen: set[str] = set()
    merged: list[MemoryRecord] = []
    for batch in batches:
        for record in batch:
            if record.id is not None:
                if record.id in seen:
                    continue
                seen.add(record.id)
            merged.append(record)
    merged.sort(key=lambda r: MISSING_SCORE if r.score is None else r.score)
    return merged


class MemoryRetriever:
    """Searches the memory store without ever failing the execution."""

    def __init__(self, store: MemoryStore, limit: int = 5) -> None:
        self._store = store
        self._limit = limit

    async def _search(
        self, query: str, kind: MemoryKind, scope: MemoryScope
    ) -> list[MemoryRecord]:
        try:
            records = await self._store.search(query, kind, scope, limit=self._limit)
        except Exception as e:
            MEMORY_OPERATIONS.labels(operation="search", status="error").inc()
            logger.warning(
                "memory_search_failed",
                kind=kind.value,
                conversation_id=scope.conversation_id,
                error=str(e),
            )
            return []
        MEMORY_OPERATIONS.labels(operation="search", status="ok").inc()
        return records

    async def facts(self, query: str, scope: MemoryScope) -> list[MemoryRecord]:
        """Durable preferences of the user, regardless of conversation."""
        return await self._search(query, MemoryKind.FACT, scope.without_conversation())

    async def conversation(self, query: str, scope: MemoryScope) -> list[MemoryRecord]:
        """Prior turns relevant to query.

        Combines a search scoped to the conversation with one across all
        of the user's conversations.
        """
        if scope.conversation_id is None:
            return await self._search(query, MemoryKind.CONVERSATION, scope)

        scoped, wide = await asyncio.gather(
            self._search(query, MemoryKind.CONVERSATION, scope),
            self._search(query, MemoryKind.CONVERSATION, scope.without_conversation()),
        )
        records = merge_records(scoped, wide)
        logger.debug(
            "conversation_memory_retrieved",
            scoped=len(scoped),
            user_wide=len(wide),
            merged=len(records),
        )
        return records
