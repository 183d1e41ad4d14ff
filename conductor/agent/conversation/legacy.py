"""Coercion of loosely-typed prompt inputs into messages."""

import json
from typing import Any

from conductor.domain.messages import Message, coerce_message


def render_system_prompt(raw: Any) -> str | None:
    """System prompt text; structured values are JSON-encoded with indentation."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        return raw
    try:
        return json.dumps(raw, indent=2)
    except (TypeError, ValueError):
        return str(raw)


def render_user_prompt(raw: Any) -> str | None:
    """User prompt text.

    A mapping with an ``input`` key contributes that value, other mappings
    are JSON-encoded, anything else is stringified.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        if raw.get("input"):
            return str(raw["input"])
        return json.dumps(raw)
    if isinstance(raw, list):
        return json.dumps(raw)
    return str(raw)


def declared_messages(raw: list[Any] | None) -> list[Message]:
    """Valid system/user/assistant turns of the block's message list."""
    messages = [coerce_message(item) for item in raw or []]
    return [m for m in messages if m is not None]


def legacy_memories(raw: Any) -> list[Message]:
    """Turns from the legacy memory block output.

    Accepts a list or ``{"memories": [...]}``; each entry is a turn or
    carries its turns under ``data``. System turns are kept.
    """
    if isinstance(raw, dict) and isinstance(raw.get("memories"), list):
        entries = raw["memories"]
    elif isinstance(raw, list):
        entries = raw
    else:
        return []

    messages: list[Message] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        turns = entry["data"] if isinstance(entry.get("data"), list) else [entry]
        for turn in turns:
            message = coerce_message(turn)
            if message is not None and message.content:
                messages.append(message)
    return messages
