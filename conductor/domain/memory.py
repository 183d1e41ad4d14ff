"""Memory domain models consumed from the memory store."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from conductor.domain.messages import Message, Role


class MemoryKind(str, Enum):
    """Kinds of memory the store keeps apart."""

    FACT = "fact"
    CONVERSATION = "conversation"


class MemoryRecord(BaseModel):
    """A record returned by a memory search.

    score is a distance: lower means more relevant. Records without a
    score sort as 1.0.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: Role
    content: str
    id: str | None = None
    score: float | None = None

    def as_message(self) -> Message:
        return Message(role=self.role, content=self.content)


class MemoryScope(BaseModel):
    """Who and what a memory operation is about."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    conversation_id: str | None = None
    block_id: str | None = None
    workflow_id: str | None = None
    workspace_id: str | None = None
    chat_id: str | None = Field(
        default=None, description="Execution id, falls back to workflow id"
    )
    deployed: bool = False

    def without_conversation(self) -> "MemoryScope":
        """Scope widened to every conversation of the user."""
        return self.model_copy(update={"conversation_id": None})
