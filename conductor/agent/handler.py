"""Agent block handler: one declarative agent node to one provider call.

Control flow of execute_agent_block:
1. Preflight: prompt sources, sampling controls and memory scope are
   validated before any external call
2. Capability resolution (a permission denial aborts the execution)
3. Intent gate, when memory is on and a conversation id is set; a SKIP
   returns the synthesized reply without a provider call
4. Memory retrieval and conversation assembly
5. Provider dispatch, buffered or streaming
6. Structured output validation (buffered only)
7. Memory persistence, deferred to full drain for streams
"""

import asyncio
import time
from dataclasses import replace

from pydantic import ValidationError

from conductor.agent.conversation.assembler import (
    AssembledConversation,
    ConversationSources,
    assemble,
)
from conductor.agent.conversation.legacy import (
    declared_messages,
    legacy_memories,
    render_system_prompt,
    render_user_prompt,
)
from conductor.agent.conversation.packing import pack
from conductor.agent.dispatch.dispatcher import ProviderDispatcher
from conductor.agent.dispatch.models import SamplingParams
from conductor.agent.intent.gate import IntentGate
from conductor.agent.structured.response_format import ResponseFormat, parse_response_format
from conductor.agent.structured.validator import validate_structured_output
from conductor.config import get_settings
from conductor.config.settings import Settings
from conductor.domain.errors import AgentExecutionError, ConfigurationError
from conductor.domain.execution import (
    AgentInputs,
    BufferedResult,
    ExecutionContext,
    ExecutionResult,
    IntentVerdict,
    StreamingResult,
)
from conductor.domain.memory import MemoryRecord, MemoryScope
from conductor.domain.messages import Role
from conductor.memory.persistence import MemoryPersistenceAdapter
from conductor.memory.retrieval import MemoryRetriever
from conductor.memory.scope import memory_scope_for
from conductor.memory.store import MemoryStore
from conductor.observability.logging import execution_log_context, get_logger
from conductor.observability.metrics import AGENT_EXECUTION_LATENCY, AGENT_EXECUTIONS
from conductor.providers.catalog import ModelCatalog
from conductor.providers.llm import count_tokens
from conductor.tools.resolver import CapabilityResolver

logger = get_logger(__name__)


class AgentBlockHandler:
    """Executes agent blocks.

    One handler serves many executions; all per-execution state lives in
    local variables, so concurrent executions need no coordination.
    """

    def __init__(
        self,
        *,
        resolver: CapabilityResolver,
        dispatcher: ProviderDispatcher,
        catalog: ModelCatalog,
        memory_store: MemoryStore | None = None,
        intent_gate: IntentGate | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._catalog = catalog
        self._intent_gate = intent_gate
        self._agent_config = settings.agent
        self._memory_config = settings.memory
        self._retriever: MemoryRetriever | None = None
        self._persistence: MemoryPersistenceAdapter | None = None
        if memory_store is not None:
            self._retriever = MemoryRetriever(memory_store, settings.memory.search_limit)
            self._persistence = MemoryPersistenceAdapter(memory_store, settings.memory)

    async def execute_agent_block(
        self,
        inputs: AgentInputs | dict,
        ctx: ExecutionContext,
    ) -> ExecutionResult:
        """Run one agent block.

        Args:
            inputs: Declarative block inputs
            ctx: Execution context of the block

        Returns:
            BufferedResult or StreamingResult

        Raises:
            ConfigurationError: Malformed inputs, no prompt of any kind, or invalid settings
            PermissionDenied: A requested capability is not allowed
            ProviderTransportError: Timeout or connection failure
            ProviderModelError: Vendor-reported failure
        """
        if isinstance(inputs, dict):
            try:
                inputs = AgentInputs.model_validate(inputs)
            except ValidationError as e:
                AGENT_EXECUTIONS.labels(outcome=ConfigurationError.code.lower()).inc()
                logger.error("agent_block_inputs_invalid", block_id=ctx.block_id, errors=e.error_count())
                raise ConfigurationError(
                    f"Invalid agent block inputs: {e.error_count()} validation error(s)",
                    errors=e.errors(include_url=False),
                ) from e

        start = time.perf_counter()
        with execution_log_context(
            block_id=ctx.block_id,
            workflow_id=ctx.workflow_id,
            execution_id=ctx.execution_id,
            conversation_id=inputs.conversation_id,
        ):
            try:
                result = await self._execute(inputs, ctx)
            except AgentExecutionError as e:
                AGENT_EXECUTIONS.labels(outcome=e.code.lower()).inc()
                logger.error("agent_block_failed", code=e.code, error=e.message)
                raise

            if isinstance(result, StreamingResult):
                mode = "stream"
            else:
                mode = "skipped" if result.skipped else "buffered"
            AGENT_EXECUTIONS.labels(outcome=mode).inc()
            AGENT_EXECUTION_LATENCY.labels(mode=mode).observe(time.perf_counter() - start)
            logger.info("agent_block_completed", mode=mode)
            return result

    async def _execute(self, inputs: AgentInputs, ctx: ExecutionContext) -> ExecutionResult:
        model = inputs.model or self._agent_config.default_model
        response_format = parse_response_format(inputs.response_format)
        sources = ConversationSources(
            declared=tuple(declared_messages(inputs.messages)),
            system_prompt=render_system_prompt(inputs.system_prompt),
            user_prompt=render_user_prompt(inputs.user_prompt),
            legacy_memories=tuple(legacy_memories(inputs.memories)),
            fact_heading=self._agent_config.fact_memory_heading,
            default_system_prompt=self._agent_config.default_system_prompt,
        )

        # Preflight: these raise ConfigurationError before any external call
        assemble(sources, ctx.block_id)
        SamplingParams.from_inputs(inputs)
        scope = memory_scope_for(inputs, ctx, self._memory_config) if self._retriever else None

        resolved = await self._resolver.resolve(inputs.tools, ctx)
        query = self._memory_query(sources)

        if scope is not None and query:
            token_limit = self._catalog.memory_token_limit(model)
            verdict, gate_facts = await self._consult_intent_gate(query, scope, token_limit)
            if verdict is not None and not verdict.should_run:
                return await self._skipped(verdict, model, sources, scope, ctx)

            facts, conversation = await self._retrieve(query, scope, verdict, gate_facts)
            packed = pack(conversation, token_limit, count_tokens(query), count_tokens)
            logger.debug(
                "memory_packed",
                candidates=len(conversation),
                packed=len(packed.packed),
                tokens=packed.tokens,
                limit=token_limit,
                truncated=packed.truncated,
            )
            sources = replace(
                sources,
                memory_context=packed.context,
                facts=tuple(record.content for record in facts),
            )

        assembled = assemble(sources, ctx.block_id)
        if scope is not None and assembled.last_user_message is not None:
            await self._persistence.remember_user_turn(assembled.last_user_message, scope)

        stream = self._agent_config.stream and ctx.should_stream
        request = self._dispatcher.build_request(
            inputs,
            ctx,
            model=model,
            messages=assembled.messages,
            tools=resolved.tools,
            response_format=response_format,
            stream=stream,
        )
        result = await self._dispatcher.dispatch(request, ctx)

        if isinstance(result, StreamingResult):
            return self._streaming(result, scope, assembled)
        return await self._buffered(result, response_format, scope, assembled)

    def _memory_query(self, sources: ConversationSources) -> str:
        """Current user utterance: the legacy prompt, else the first declared user turn."""
        if sources.user_prompt:
            return sources.user_prompt
        first = next((m for m in sources.declared if m.role == Role.USER.value), None)
        return first.content if first else ""

    async def _consult_intent_gate(
        self,
        query: str,
        scope: MemoryScope,
        token_limit: int,
    ) -> tuple[IntentVerdict | None, list[MemoryRecord]]:
        if self._intent_gate is None or not scope.conversation_id:
            return None, []
        facts = await self._retriever.facts(query, scope)
        verdict = await self._intent_gate.evaluate(
            query, scope, token_limit=token_limit, facts=facts
        )
        return verdict, facts

    async def _retrieve(
        self,
        query: str,
        scope: MemoryScope,
        verdict: IntentVerdict | None,
        gate_facts: list[MemoryRecord],
    ) -> tuple[list[MemoryRecord], list[MemoryRecord]]:
        """Fact and conversational memories, reusing what the gate fetched."""
        if verdict is None:
            facts, conversation = await asyncio.gather(
                self._retriever.facts(query, scope),
                self._retriever.conversation(query, scope),
            )
            return facts, conversation

        if verdict.memories is not None:
            return gate_facts, verdict.memories
        return gate_facts, await self._retriever.conversation(query, scope)

    async def _skipped(
        self,
        verdict: IntentVerdict,
        model: str,
        sources: ConversationSources,
        scope: MemoryScope,
        ctx: ExecutionContext,
    ) -> BufferedResult:
        """Answer with the gate's reply; the reply stands even if persistence fails."""
        reply = verdict.reply or ""
        user_turn = assemble(sources, ctx.block_id).last_user_message
        if user_turn is not None:
            await self._persistence.remember_user_turn(user_turn, scope)
        await self._persistence.persist_response(reply, scope, user_turn)
        logger.info("agent_block_skipped", reply_length=len(reply))
        return BufferedResult(content=reply, model=model, block_id=ctx.block_id, skipped=True)

    def _streaming(
        self,
        result: StreamingResult,
        scope: MemoryScope | None,
        assembled: AssembledConversation,
    ) -> StreamingResult:
        if scope is None:
            return result
        return StreamingResult(
            stream=self._persistence.wrap_for_persistence(
                result.stream, scope, assembled.last_user_message
            ),
            execution=result.execution,
        )

    async def _buffered(
        self,
        result: BufferedResult,
        response_format: ResponseFormat | None,
        scope: MemoryScope | None,
        assembled: AssembledConversation,
    ) -> BufferedResult:
        if response_format is not None:
            outcome = validate_structured_output(result.content, response_format)
            if outcome.mismatch is not None:
                result = result.model_copy(update={"response_format_warning": outcome.warning})
            else:
                result = result.model_copy(update={"structured_output": outcome.data})

        if scope is not None:
            await self._persistence.persist_response(
                result.content, scope, assembled.last_user_message
            )
        return result
