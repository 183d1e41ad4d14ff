"""Memory API implementation of MemoryStore.

Talks to the memory service over HTTP:
- POST /search   {query, user_id, filters, limit}
- POST /memories {messages, user_id, infer, metadata}

Assistant replies are stored twice: once with ``infer`` so the service
extracts durable facts, and once verbatim as conversation memory.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import httpx

from conductor.domain.memory import MemoryKind, MemoryRecord, MemoryScope
from conductor.domain.messages import CONVERSATION_ROLES, Message, Role
from conductor.memory.store import MemoryStore, MemoryStoreError
from conductor.observability.logging import get_logger

logger = get_logger(__name__)


def records_from_response(payload: Any) -> list[MemoryRecord]:
    """Convert a search response to records.

    The service has answered with a bare list and with ``results``,
    ``memories`` or ``data`` envelopes; each result carries its text in
    ``memory`` or ``content``, or nests turns under ``messages``.
    """
    if isinstance(payload, list):
        results = payload
    elif isinstance(payload, dict):
        results = next(
            (payload[key] for key in ("results", "memories", "data") if isinstance(payload.get(key), list)),
            [],
        )
    else:
        results = []

    records: list[MemoryRecord] = []
    for result in results:
        if not isinstance(result, dict):
            continue
        record_id = result.get("id")
        score = result.get("score")
        memory = result.get("memory")
        turns: list[dict[str, Any]] = []

        if isinstance(memory, str) and result.get("role"):
            turns = [{"role": result["role"], "content": memory}]
        elif result.get("content") and result.get("role"):
            turns = [result]
        elif isinstance(result.get("messages"), list):
            turns = result["messages"]
        elif isinstance(memory, dict):
            if isinstance(memory.get("messages"), list):
                turns = memory["messages"]
            elif memory.get("role") and memory.get("content"):
                turns = [memory]

        for index, turn in enumerate(turns):
            if not isinstance(turn, dict):
                continue
            role, content = turn.get("role"), turn.get("content")
            if role not in CONVERSATION_ROLES or not content:
                continue
            records.append(
                MemoryRecord(
                    id=f"{record_id}:{index}" if record_id and len(turns) > 1 else record_id,
                    role=role,
                    content=str(content),
                    score=score if isinstance(score, int | float) else None,
                )
            )
    return records


class HttpMemoryStore(MemoryStore):
    """MemoryStore backed by the memory API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        search_limit: int = 5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._search_limit = search_limit
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "HttpMemoryStore":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(
                path,
                json=payload,
                headers={"accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise MemoryStoreError(f"Memory API unreachable: {e}") from e

        if response.status_code >= 400:
            raise MemoryStoreError(
                f"Memory API {path} failed: {response.text}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        return response.json()

    async def search(
        self,
        query: str,
        kind: MemoryKind,
        scope: MemoryScope,
        *,
        limit: int | None = None,
    ) -> list[MemoryRecord]:
        filters: dict[str, Any] = {"memory_type": kind.value}
        if scope.conversation_id:
            filters["conversation_id"] = scope.conversation_id

        payload = {
            "query": query,
            "user_id": scope.user_id,
            "filters": filters,
            "limit": limit or self._search_limit,
        }
        logger.debug("memory_api_search", kind=kind.value, has_conversation=bool(scope.conversation_id))
        return records_from_response(await self._post("/search", payload))

    async def _store(
        self,
        messages: list[Message],
        scope: MemoryScope,
        *,
        infer: bool,
        kind: MemoryKind,
    ) -> None:
        metadata: dict[str, Any] = {
            "memory_type": kind.value,
            "conversation_id": scope.conversation_id or scope.chat_id,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if scope.block_id:
            metadata["block_id"] = scope.block_id
        if not infer:
            metadata["executionId"] = str(uuid4())

        await self._post(
            "/memories",
            {
                "messages": [m.to_provider() for m in messages],
                "user_id": scope.user_id,
                "infer": infer,
                "metadata": metadata,
            },
        )

    async def append(
        self,
        message: Message,
        scope: MemoryScope,
        *,
        previous: Message | None = None,
    ) -> None:
        if message.role != Role.ASSISTANT.value:
            await self._store([message], scope, infer=False, kind=MemoryKind.CONVERSATION)
            return

        if previous is None:
            logger.debug("memory_api_reply_without_user_turn", block_id=scope.block_id)
            return

        # Each write is attempted even when the other fails
        turn = [previous, message]
        failures: list[MemoryStoreError] = []
        for infer, kind in ((True, MemoryKind.FACT), (False, MemoryKind.CONVERSATION)):
            try:
                await self._store(turn, scope, infer=infer, kind=kind)
            except MemoryStoreError as e:
                logger.warning("memory_api_store_failed", kind=kind.value, error=str(e))
                failures.append(e)
        if failures:
            raise failures[0]
