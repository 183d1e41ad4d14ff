"""Abstract interfaces of the stores the agent handler reads from."""

from abc import ABC, abstractmethod

from conductor.domain.execution import PriorTurn


class ExecutionLogStore(ABC):
    """Read access to completed workflow executions."""

    @abstractmethod
    async def latest_completed(self, conversation_id: str) -> PriorTurn | None:
        """Most recent completed execution of a conversation with a recorded output."""
        pass


class CredentialStore(ABC):
    """Stored OAuth credentials exchanged for short-lived access tokens."""

    @abstractmethod
    async def access_token(self, credential_id: str) -> str | None:
        """Return a fresh access token, refreshing the credential if needed."""
        pass
