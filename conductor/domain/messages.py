"""Conversation message models shared by every execution stage."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Role of a message in a provider conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


CONVERSATION_ROLES: frozenset[str] = frozenset(r.value for r in Role)


class Message(BaseModel):
    """One conversation turn.

    Messages are immutable; assembly stages build new lists instead of
    editing turns in place.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: Role = Field(..., description="system, user or assistant")
    content: str = Field(..., description="Plain text content")
    execution_id: str | None = Field(
        default=None, description="Execution that produced the turn, if known"
    )

    def with_content(self, content: str) -> "Message":
        """Return a copy of this message with different content."""
        return self.model_copy(update={"content": content})

    def to_provider(self) -> dict[str, Any]:
        """Render the message for a provider request (execution id stripped)."""
        return {"role": self.role, "content": self.content}


def coerce_message(raw: Any) -> Message | None:
    """Build a Message from a loosely-typed mapping.

    Returns None for anything that is not a system/user/assistant turn
    with content.
    """
    if isinstance(raw, Message):
        return raw
    if not isinstance(raw, dict):
        return None
    role = raw.get("role")
    content = raw.get("content")
    if role not in CONVERSATION_ROLES or content is None:
        return None
    return Message(role=role, content=str(content), execution_id=raw.get("executionId"))
