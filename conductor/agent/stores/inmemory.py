"""In-memory execution log and credential store for tests and local runs."""

from dataclasses import dataclass
from datetime import UTC, datetime

from conductor.agent.stores.interface import CredentialStore, ExecutionLogStore
from conductor.domain.execution import PriorTurn


@dataclass
class ExecutionLogEntry:
    conversation_id: str
    status: str
    initial_input: str | None
    final_output: str | None
    started_at: datetime


class InMemoryExecutionLog(ExecutionLogStore):
    """Execution log kept in a list."""

    def __init__(self) -> None:
        self.entries: list[ExecutionLogEntry] = []
        self.lookups: list[str] = []
        self.error: Exception | None = None

    def record(
        self,
        conversation_id: str,
        initial_input: str | None,
        final_output: str | None,
        *,
        status: str = "completed",
        started_at: datetime | None = None,
    ) -> None:
        self.entries.append(
            ExecutionLogEntry(
                conversation_id=conversation_id,
                status=status,
                initial_input=initial_input,
                final_output=final_output,
                started_at=started_at or datetime.now(UTC),
            )
        )

    async def latest_completed(self, conversation_id: str) -> PriorTurn | None:
        self.lookups.append(conversation_id)
        if self.error is not None:
            raise self.error

        candidates = [
            e
            for e in self.entries
            if e.conversation_id == conversation_id
            and e.status == "completed"
            and e.initial_input
            and e.final_output
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda e: e.started_at)
        return PriorTurn(initial_input=latest.initial_input, final_output=latest.final_output)


class InMemoryCredentialStore(CredentialStore):
    """Hands out a new token on every request, counting refreshes."""

    def __init__(self, credentials: dict[str, str] | None = None) -> None:
        self._credentials = dict(credentials or {})
        self.refreshes: dict[str, int] = {}

    def add(self, credential_id: str, token_prefix: str) -> None:
        self._credentials[credential_id] = token_prefix

    async def access_token(self, credential_id: str) -> str | None:
        prefix = self._credentials.get(credential_id)
        if prefix is None:
            return None
        count = self.refreshes.get(credential_id, 0) + 1
        self.refreshes[credential_id] = count
        return f"{prefix}-{count}"
