"""Intent gate: decide whether a chat turn needs the full pipeline.

The gate is an optimisation. Every failure inside it resolves to RUN and
is attached to the verdict as an IntentGateFailure; nothing is raised.
"""

import asyncio
from pathlib import Path

from conductor.agent.conversation.packing import pack
from conductor.agent.intent.result import attempt
from conductor.agent.stores.interface import ExecutionLogStore
from conductor.agent.template_loader import TemplateLoader
from conductor.config.models.intent import IntentGateConfig
from conductor.domain.errors import IntentGateFailure
from conductor.domain.execution import IntentDecision, IntentVerdict, PriorTurn
from conductor.domain.memory import MemoryRecord, MemoryScope
from conductor.memory.retrieval import MemoryRetriever
from conductor.observability.logging import get_logger
from conductor.observability.metrics import INTENT_VERDICTS
from conductor.providers.llm import LLMExecutor, LLMMessage, count_tokens

logger = get_logger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"


def _degraded(error: Exception, stage: str) -> IntentGateFailure:
    logger.warning("intent_gate_degraded_to_run", stage=stage, error=str(error))
    if isinstance(error, IntentGateFailure):
        return error
    return IntentGateFailure(f"Intent gate {stage} failed: {error}", stage=stage)


class IntentGate:
    """RUN/SKIP pre-classifier backed by the execution log and memory."""

    def __init__(
        self,
        classifier: LLMExecutor,
        responder: LLMExecutor,
        execution_log: ExecutionLogStore,
        retriever: MemoryRetriever,
        config: IntentGateConfig,
    ) -> None:
        self._classifier = classifier
        self._responder = responder
        self._execution_log = execution_log
        self._retriever = retriever
        self._config = config
        self._templates = TemplateLoader(PROMPTS_DIR)

    async def evaluate(
        self,
        user_prompt: str,
        scope: MemoryScope,
        *,
        token_limit: int,
        facts: list[MemoryRecord] | None = None,
    ) -> IntentVerdict:
        """Decide RUN or SKIP for the current turn.

        Args:
            user_prompt: Current user utterance
            scope: Memory scope, with the conversation id set
            token_limit: Memory token budget of the block's model
            facts: Fact memories already retrieved for the turn

        Returns:
            IntentVerdict; on SKIP it carries the synthesized reply
        """
        verdict = await self._evaluate(user_prompt, scope, token_limit, facts or [])
        INTENT_VERDICTS.labels(
            decision=verdict.decision.value,
            degraded=str(verdict.failure is not None).lower(),
        ).inc()
        logger.info(
            "intent_gate_verdict",
            decision=verdict.decision.value,
            degraded=verdict.failure is not None,
            memories=len(verdict.memories or []),
        )
        return verdict

    async def _evaluate(
        self,
        user_prompt: str,
        scope: MemoryScope,
        token_limit: int,
        facts: list[MemoryRecord],
    ) -> IntentVerdict:
        if not self._config.enabled or not scope.conversation_id:
            return IntentVerdict.run()

        lookup = await attempt(self._execution_log.latest_completed(scope.conversation_id))
        if not lookup.is_ok:
            return IntentVerdict.run(failure=_degraded(lookup.error, "lookup"))
        prior: PriorTurn | None = lookup.value
        if prior is None or not prior.final_output:
            logger.debug("intent_gate_no_prior_turn", conversation_id=scope.conversation_id)
            return IntentVerdict.run()

        memories = await self._retriever.conversation(user_prompt, scope)
        memory_context = pack(
            memories,
            limit=token_limit,
            base_cost=count_tokens(user_prompt),
            counter=count_tokens,
        ).context

        classified = await attempt(self._classify(user_prompt, prior, memory_context))
        verdict = classified.map(
            lambda decision: IntentVerdict(decision=decision, memories=memories)
        ).unwrap_or_else(
            lambda error: IntentVerdict.run(memories, failure=_degraded(error, "classifier"))
        )
        if verdict.should_run:
            return verdict

        verdict.reply = await self._synthesize(user_prompt, prior, facts, memory_context)
        return verdict

    async def _classify(
        self,
        user_prompt: str,
        prior: PriorTurn,
        memory_context: str,
    ) -> IntentDecision:
        messages = [
            LLMMessage(role="system", content=self._templates.render("controller_system.jinja2")),
            LLMMessage(
                role="user",
                content=self._templates.render(
                    "controller_user.jinja2",
                    user_prompt=user_prompt,
                    prior=prior,
                    memory_context=memory_context,
                ),
            ),
        ]
        response = await asyncio.wait_for(
            self._classifier.generate(
                messages,
                temperature=0.0,
                max_tokens=self._config.classifier_max_tokens,
            ),
            timeout=self._config.classifier_timeout,
        )
        answer = (response.content or "").strip().upper()
        if answer == IntentDecision.SKIP.value:
            return IntentDecision.SKIP
        if answer != IntentDecision.RUN.value:
            logger.info("intent_classifier_unexpected_answer", answer=answer[:20])
        return IntentDecision.RUN

    async def _synthesize(
        self,
        user_prompt: str,
        prior: PriorTurn,
        facts: list[MemoryRecord],
        memory_context: str,
    ) -> str:
        """Answer from the prior turn, fact memories and retrieved history."""
        messages = [
            LLMMessage(role="system", content=self._templates.render("skip_system.jinja2")),
            LLMMessage(
                role="user",
                content=self._templates.render(
                    "skip_user.jinja2",
                    user_prompt=user_prompt,
                    prior=prior,
                    facts=facts,
                    memory_context=memory_context,
                ),
            ),
        ]
        result = await attempt(
            self._responder.generate(
                messages,
                temperature=self._config.reply_temperature,
                max_tokens=self._config.reply_max_tokens,
            )
        )
        if not result.is_ok:
            logger.warning("intent_skip_reply_failed", error=str(result.error))
            return self._config.failed_reply

        content = (result.value.content or "").strip()
        return content or self._config.empty_reply
