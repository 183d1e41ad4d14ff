"""MemoryStore abstract interface."""

from abc import ABC, abstractmethod
from typing import Any

from conductor.domain.memory import MemoryKind, MemoryRecord, MemoryScope
from conductor.domain.messages import Message


class MemoryStoreError(Exception):
    """A memory store call failed."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class MemoryStore(ABC):
    """Long-term memory consumed by agent blocks.

    Fact and conversational records are kept apart by kind. A scope
    without a conversation id searches every conversation of the user.
    """

    @abstractmethod
    async def search(
        self,
        query: str,
        kind: MemoryKind,
        scope: MemoryScope,
        *,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        """Semantic search, most relevant first.

        Raises:
            MemoryStoreError: If the store cannot be searched
        """
        pass

    @abstractmethod
    async def append(
        self,
        message: Message,
        scope: MemoryScope,
        *,
        previous: Message | None = None,
    ) -> None:
        """Store a turn.

        ``previous`` is the user turn an assistant reply answers, so the
        store can keep the pair together.

        Raises:
            MemoryStoreError: If the turn cannot be stored
        """
        pass
