"""Configuration model exports.

    from conductor.config.models import MemoryConfig, ToolsConfig
"""

from conductor.config.models.agent import AgentConfig
from conductor.config.models.intent import IntentGateConfig
from conductor.config.models.memory import MemoryConfig
from conductor.config.models.observability import (
    LoggingConfig,
    ObservabilityConfig,
)
from conductor.config.models.providers import (
    ModelDefinition,
    ProviderDefinition,
    ProvidersConfig,
)
from conductor.config.models.tools import ToolsConfig

__all__ = [
    "AgentConfig",
    "IntentGateConfig",
    "MemoryConfig",
    "LoggingConfig",
    "ObservabilityConfig",
    "ModelDefinition",
    "ProviderDefinition",
    "ProvidersConfig",
    "ToolsConfig",
]
