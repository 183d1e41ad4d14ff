"""In-memory implementation of MemoryStore."""

import re
from dataclasses import dataclass
from uuid import uuid4

from conductor.domain.memory import MemoryKind, MemoryRecord, MemoryScope
from conductor.domain.messages import Message
from conductor.memory.store import MemoryStore, MemoryStoreError

_WORD = re.compile(r"\w+")


@dataclass
class _Entry:
    id: str
    kind: MemoryKind
    user_id: str
    conversation_id: str | None
    message: Message


def _distance(query: str, content: str) -> float:
    """Share of query words missing from content (0.0 = all present)."""
    words = set(_WORD.findall(query.lower()))
    if not words:
        return 1.0
    found = words & set(_WORD.findall(content.lower()))
    return 1.0 - len(found) / len(words)


class InMemoryMemoryStore(MemoryStore):
    """In-memory implementation of MemoryStore for testing and development.

    Search ranks by word overlap with linear scan. Appended turns are
    stored as conversational records; facts are added with add_fact.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        self._entries: list[_Entry] = []
        self.appended: list[tuple[Message, MemoryScope, Message | None]] = []
        self.fail_search = False
        self.fail_append = False

    def add_fact(self, user_id: str, content: str) -> str:
        """Record a durable preference for a user."""
        entry_id = str(uuid4())
        self._entries.append(
            _Entry(
                id=entry_id,
                kind=MemoryKind.FACT,
                user_id=user_id,
                conversation_id=None,
                message=Message(role="user", content=content),
            )
        )
        return entry_id

    def add_turn(self, user_id: str, conversation_id: str | None, message: Message) -> str:
        """Record a conversational turn directly."""
        entry_id = str(uuid4())
        self._entries.append(
            _Entry(
                id=entry_id,
                kind=MemoryKind.CONVERSATION,
                user_id=user_id,
                conversation_id=conversation_id,
                message=message,
            )
        )
        return entry_id

    async def search(
        self,
        query: str,
        kind: MemoryKind,
        scope: MemoryScope,
        *,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        if self.fail_search:
            raise MemoryStoreError("search unavailable")

        results = [
            MemoryRecord(
                id=entry.id,
                role=entry.message.role,
                content=entry.message.content,
                score=_distance(query, entry.message.content),
            )
            for entry in self._entries
            if entry.kind == kind
            and entry.user_id == scope.user_id
            and (scope.conversation_id is None or entry.conversation_id == scope.conversation_id)
        ]
        results.sort(key=lambda r: r.score)
        return results[:limit] if limit else results

    async def append(
        self,
        message: Message,
        scope: MemoryScope,
        *,
        previous: Message | None = None,
    ) -> None:
        if self.fail_append:
            raise MemoryStoreError("append unavailable")
        self.appended.append((message, scope, previous))
        self.add_turn(scope.user_id, scope.conversation_id, message)
