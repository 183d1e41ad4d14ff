"""Token-budgeted packing of conversational memory."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from conductor.domain.memory import MemoryRecord
from conductor.domain.messages import Role

TokenCounter = Callable[[str], int]


@dataclass(frozen=True)
class PackResult:
    """Memory context chosen for one request."""

    context: str = ""
    packed: tuple[MemoryRecord, ...] = field(default_factory=tuple)
    tokens: int = 0
    truncated: bool = False


def render_record(record: MemoryRecord) -> str:
    speaker = "User" if record.role == Role.USER.value else "Assistant"
    return f"\nPrevious conversation:\n{speaker}: {record.content}"


def pack(
    candidates: Sequence[MemoryRecord],
    limit: int,
    base_cost: int,
    counter: TokenCounter,
) -> PackResult:
    """Greedily pack records, most relevant first, under a token limit.

    The running count starts at base_cost. Packing stops at the first
    record that would take it over limit, so the same inputs always
    produce the same cut.
    """
    total = base_cost
    parts: list[str] = []
    packed: list[MemoryRecord] = []
    truncated = False

    for record in candidates:
        text = render_record(record)
        cost = counter(text)
        if total + cost > limit:
            truncated = True
            break
        parts.append(text)
        packed.append(record)
        total += cost

    return PackResult(
        context="".join(parts),
        packed=tuple(packed),
        tokens=total,
        truncated=truncated,
    )
