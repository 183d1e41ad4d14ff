"""Writes turns back to the memory store after an execution.

Persistence never fails the execution: store errors are logged and
counted. Streamed replies are stored only once the caller has consumed
the whole stream, so memory never holds a partial assistant turn.
"""

import codecs
from collections.abc import AsyncIterator

from conductor.config.models.memory import MemoryConfig
from conductor.domain.memory import MemoryScope
from conductor.domain.messages import Message, Role
from conductor.memory.store import MemoryStore
from conductor.observability.logging import get_logger
from conductor.observability.metrics import MEMORY_OPERATIONS

logger = get_logger(__name__)


class MemoryPersistenceAdapter:
    """Appends user and assistant turns for one memory scope."""

    def __init__(self, store: MemoryStore, config: MemoryConfig) -> None:
        self._store = store
        self._config = config

    def _storable(self, message: Message) -> bool:
        size = len(message.content.encode("utf-8"))
        if size > self._config.max_message_content_bytes:
            logger.warning(
                "memory_message_too_large",
                role=message.role,
                size_bytes=size,
                max_bytes=self._config.max_message_content_bytes,
            )
            return False
        return True

    async def _append(
        self,
        message: Message,
        scope: MemoryScope,
        previous: Message | None = None,
    ) -> bool:
        if not self._storable(message):
            return False
        try:
            await self._store.append(message, scope, previous=previous)
        except Exception as e:
            MEMORY_OPERATIONS.labels(operation="append", status="error").inc()
            logger.warning(
                "memory_append_failed",
                role=message.role,
                conversation_id=scope.conversation_id,
                error=str(e),
            )
            return False
        MEMORY_OPERATIONS.labels(operation="append", status="ok").inc()
        return True

    async def remember_user_turn(self, message: Message, scope: MemoryScope) -> bool:
        """Store the user turn of this execution. Returns whether it was stored."""
        return await self._append(message, scope)

    async def persist_response(
        self,
        content: str | None,
        scope: MemoryScope,
        last_user_message: Message | None = None,
    ) -> bool:
        """Store a buffered assistant reply. Empty replies are not stored."""
        if not content:
            return False
        reply = Message(role=Role.ASSISTANT, content=content)
        return await self._append(reply, scope, previous=last_user_message)

    async def wrap_for_persistence(
        self,
        stream: AsyncIterator[str | bytes],
        scope: MemoryScope,
        last_user_message: Message | None = None,
    ) -> AsyncIterator[str | bytes]:
        """Pass chunks through unchanged; store the reply after full drain.

        Byte chunks are decoded incrementally so multi-byte characters
        split across chunks survive. If the consumer stops early or the
        upstream fails, nothing is stored.
        """
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        parts: list[str] = []
        chunks = 0
        try:
            async for chunk in stream:
                chunks += 1
                parts.append(decoder.decode(chunk) if isinstance(chunk, bytes) else chunk)
                yield chunk
        except GeneratorExit:
            logger.info(
                "stream_abandoned_memory_skipped",
                chunks_seen=chunks,
                conversation_id=scope.conversation_id,
            )
            raise

        parts.append(decoder.decode(b"", final=True))
        await self.persist_response("".join(parts), scope, last_user_message)
