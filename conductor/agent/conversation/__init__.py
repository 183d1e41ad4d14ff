"""Conversation assembly for agent blocks."""

from conductor.agent.conversation.assembler import (
    AssembledConversation,
    ConversationSources,
    assemble,
    fold,
)
from conductor.agent.conversation.legacy import (
    declared_messages,
    legacy_memories,
    render_system_prompt,
    render_user_prompt,
)
from conductor.agent.conversation.packing import PackResult, pack, render_record

__all__ = [
    "AssembledConversation",
    "ConversationSources",
    "PackResult",
    "assemble",
    "declared_messages",
    "fold",
    "legacy_memories",
    "pack",
    "render_record",
    "render_system_prompt",
    "render_user_prompt",
]
