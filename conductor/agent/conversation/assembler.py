"""Conversation assembly as a fold over ordered message sources.

Each step is a pure function from one AssemblyState to the next. Steps
run in this fixed order:

1. memory_context   packed conversational memory joins the user utterance
2. legacy_memories  legacy memory turns, system turns included, in place
3. declared_turns   the block's user/assistant turns
4. system_message   one system message at index 0, duplicates removed
5. user_prompt      the legacy user prompt as the newest user turn
6. fact_memories    durable preferences appended to the system text
7. default_system   default system prompt when no source supplied one

The result always has exactly one system message, at index 0.
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from functools import reduce

from conductor.domain.errors import ConfigurationError
from conductor.domain.messages import Message, Role
from conductor.observability.logging import get_logger

logger = get_logger(__name__)

SYSTEM = Role.SYSTEM.value
USER = Role.USER.value


@dataclass(frozen=True)
class ConversationSources:
    """Everything the assembler may draw messages from."""

    declared: tuple[Message, ...] = ()
    system_prompt: str | None = None
    user_prompt: str | None = None
    legacy_memories: tuple[Message, ...] = ()
    memory_context: str = ""
    facts: tuple[str, ...] = ()
    fact_heading: str = "Consider these user preferences when you are giving user response -"
    default_system_prompt: str = "You are a helpful assistant."


@dataclass(frozen=True)
class AssemblyState:
    messages: tuple[Message, ...] = ()
    turns: tuple[Message, ...] = ()
    user_prompt: str | None = None


@dataclass(frozen=True)
class AssembledConversation:
    """Final message list plus the user turn to remember."""

    messages: list[Message] = field(default_factory=list)
    last_user_message: Message | None = None


Step = Callable[[AssemblyState, ConversationSources], AssemblyState]


def _append_to_first_user(turns: tuple[Message, ...], text: str) -> tuple[Message, ...] | None:
    for index, turn in enumerate(turns):
        if turn.role == USER:
            updated = turn.with_content(turn.content + text)
            return turns[:index] + (updated,) + turns[index + 1:]
    return None


def memory_context(state: AssemblyState, sources: ConversationSources) -> AssemblyState:
    if not sources.memory_context:
        return state
    if state.user_prompt:
        return replace(state, user_prompt=state.user_prompt + sources.memory_context)
    turns = _append_to_first_user(state.turns, sources.memory_context)
    if turns is None:
        logger.debug("memory_context_without_user_turn")
        return state
    return replace(state, turns=turns)


def legacy_memories(state: AssemblyState, sources: ConversationSources) -> AssemblyState:
    return replace(state, messages=state.messages + sources.legacy_memories)


def declared_turns(state: AssemblyState, sources: ConversationSources) -> AssemblyState:  # noqa: ARG001
    return replace(state, messages=state.messages + state.turns)


def system_message(state: AssemblyState, sources: ConversationSources) -> AssemblyState:
    """Place the winning system content at index 0 and drop every other system turn.

    Precedence: explicit system prompt, then the block's declared system
    turn, then the first system turn contributed by memory.
    """
    declared_system = next((m for m in sources.declared if m.role == SYSTEM), None)
    existing = next((m for m in state.messages if m.role == SYSTEM), None)

    if sources.system_prompt is not None:
        winner = Message(role=Role.SYSTEM, content=sources.system_prompt)
    elif declared_system is not None:
        winner = declared_system
    elif existing is not None:
        winner = existing
    else:
        return state

    kept: list[Message] = []
    for position, message in enumerate(state.messages):
        if message.role != SYSTEM:
            kept.append(message)
        elif message is not winner:
            logger.warning("duplicate_system_message_removed", position=position)

    for message in sources.declared:
        if message.role == SYSTEM and message is not winner:
            logger.warning("duplicate_system_message_removed", source="declared")

    return replace(state, messages=(winner, *kept))


def user_prompt(state: AssemblyState, sources: ConversationSources) -> AssemblyState:  # noqa: ARG001
    if not state.user_prompt:
        return state
    return replace(
        state,
        messages=state.messages + (Message(role=Role.USER, content=state.user_prompt),),
    )


def fact_memories(state: AssemblyState, sources: ConversationSources) -> AssemblyState:
    if not sources.facts:
        return state
    listing = "\n".join(f"- {fact}" for fact in sources.facts)
    block = f"{sources.fact_heading}\n{listing}"

    if state.messages and state.messages[0].role == SYSTEM:
        head = state.messages[0]
        return replace(
            state,
            messages=(head.with_content(f"{head.content}\n\n{block}"), *state.messages[1:]),
        )
    return replace(state, messages=(Message(role=Role.SYSTEM, content=block), *state.messages))


def default_system(state: AssemblyState, sources: ConversationSources) -> AssemblyState:
    if state.messages and state.messages[0].role == SYSTEM:
        return state
    default = Message(role=Role.SYSTEM, content=sources.default_system_prompt)
    return replace(state, messages=(default, *state.messages))


STEPS: tuple[Step, ...] = (
    memory_context,
    legacy_memories,
    declared_turns,
    system_message,
    user_prompt,
    fact_memories,
)


def fold(sources: ConversationSources, steps: tuple[Step, ...] = STEPS) -> AssemblyState:
    """Apply steps in order to an empty state."""
    initial = AssemblyState(
        turns=tuple(m for m in sources.declared if m.role != SYSTEM),
        user_prompt=sources.user_prompt,
    )
    return reduce(lambda state, step: step(state, sources), steps, initial)


def last_user_turn(sources: ConversationSources) -> Message | None:
    """The user turn of this execution, without injected memory context."""
    if sources.user_prompt:
        return Message(role=Role.USER, content=sources.user_prompt)
    users = [m for m in sources.declared if m.role == USER]
    return users[-1] if users else None


def assemble(sources: ConversationSources, block_id: str | None = None) -> AssembledConversation:
    """Build the provider message list.

    Raises:
        ConfigurationError: If no source supplied any message
    """
    state = fold(sources)
    if not state.messages:
        logger.error(
            "no_messages_built",
            block_id=block_id,
            has_user_prompt=bool(sources.user_prompt),
            declared=len(sources.declared),
        )
        raise ConfigurationError(
            "No messages to send to LLM. Please provide either userPrompt or "
            "messages with at least one user message.",
            block_id=block_id,
        )

    state = default_system(state, sources)
    logger.debug(
        "messages_assembled",
        block_id=block_id,
        total=len(state.messages),
        user=sum(1 for m in state.messages if m.role == USER),
        assistant=sum(1 for m in state.messages if m.role == Role.ASSISTANT.value),
    )
    return AssembledConversation(
        messages=list(state.messages),
        last_user_message=last_user_turn(sources),
    )
