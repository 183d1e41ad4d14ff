"""When memory applies to an execution, and for whom."""

from conductor.config.models.memory import MemoryConfig
from conductor.domain.errors import ConfigurationError
from conductor.domain.execution import AgentInputs, ExecutionContext
from conductor.domain.memory import MemoryScope
from conductor.observability.logging import get_logger

logger = get_logger(__name__)


def memory_scope_for(
    inputs: AgentInputs,
    ctx: ExecutionContext,
    config: MemoryConfig,
) -> MemoryScope | None:
    """Build the memory scope of an execution, or None when memory is off.

    Memory is active only when the block enables it, the principal is
    known and the trigger type is one memory is configured for.

    Raises:
        ConfigurationError: If the conversation id is longer than allowed
    """
    if not inputs.memory_enabled:
        return None
    if not ctx.user_id:
        logger.debug("memory_skipped_no_user", block_id=ctx.block_id)
        return None
    if ctx.trigger_type not in config.trigger_types:
        logger.debug("memory_skipped_trigger_type", trigger_type=ctx.trigger_type)
        return None

    conversation_id = inputs.conversation_id or None
    if conversation_id and len(conversation_id) > config.max_conversation_id_length:
        raise ConfigurationError(
            f"Conversation ID too long (max {config.max_conversation_id_length} characters)",
            length=len(conversation_id),
        )

    return MemoryScope(
        user_id=ctx.user_id,
        conversation_id=conversation_id,
        block_id=ctx.block_id,
        workflow_id=ctx.workflow_id,
        workspace_id=ctx.workspace_id,
        chat_id=ctx.execution_id or ctx.workflow_id,
        deployed=ctx.is_deployed,
    )
