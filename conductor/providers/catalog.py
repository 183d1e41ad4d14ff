"""Model catalogue lookups: provider routing and memory token budgets."""

import math
import re

from conductor.config.models.memory import MemoryConfig
from conductor.config.models.providers import ProviderDefinition, ProvidersConfig
from conductor.observability.logging import get_logger

logger = get_logger(__name__)


class ModelCatalog:
    """Answers which provider serves a model and how large its context is."""

    def __init__(self, providers: ProvidersConfig, memory: MemoryConfig) -> None:
        self._providers = providers.catalog
        self._memory = memory
        self._patterns = {
            provider_id: [re.compile(p) for p in definition.model_patterns]
            for provider_id, definition in self._providers.items()
        }

    def _matches(self, provider_id: str, definition: ProviderDefinition, model: str) -> bool:
        return any(m.id == model for m in definition.models) or any(
            pattern.search(model) for pattern in self._patterns[provider_id]
        )

    def provider_for(self, model: str) -> str:
        """Provider id for a model, defaulting to openai."""
        for provider_id, definition in self._providers.items():
            if self._matches(provider_id, definition, model):
                return provider_id
        logger.debug("model_provider_unknown", model=model)
        return "openai"

    def qualified_model(self, model: str) -> str:
        """Model string in ``provider/model`` form, as the executor routes it."""
        if "/" in model:
            return model
        provider = self.provider_for(model)
        prefix = "azure" if provider == "azure-openai" else provider
        return f"{prefix}/{model}"

    def context_window(self, model: str) -> int | None:
        for provider_id, definition in self._providers.items():
            if not definition.context_information_available:
                continue
            if not self._matches(provider_id, definition, model):
                continue
            for known in definition.models:
                if known.id == model and known.context_window:
                    return known.context_window
        return None

    def memory_token_limit(self, model: str | None) -> int:
        """Tokens of conversational memory a request to model may carry."""
        if not model:
            return self._memory.default_token_limit
        window = self.context_window(model)
        if not window:
            logger.debug(
                "model_context_window_unknown",
                model=model,
                default_limit=self._memory.default_token_limit,
            )
            return self._memory.default_token_limit
        return math.floor(window * self._memory.context_window_ratio)
