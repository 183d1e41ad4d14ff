"""Root settings model for conductor configuration."""

from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from conductor.config.models.agent import AgentConfig
from conductor.config.models.intent import IntentGateConfig
from conductor.config.models.memory import MemoryConfig
from conductor.config.models.observability import ObservabilityConfig
from conductor.config.models.providers import ProvidersConfig
from conductor.config.models.tools import ToolsConfig

# TOML config read by the settings source below
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Set the TOML configuration to be used by Settings."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Settings source that reads from the merged TOML configuration."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return _toml_config.copy()


class Settings(BaseSettings):
    """Root configuration object containing all nested configuration sections.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml (base configuration)
    3. config/{CONDUCTOR_ENV}.toml (environment overrides)
    4. CONDUCTOR_* environment variables (runtime overrides)
    """

    model_config = SettingsConfigDict(
        env_prefix="CONDUCTOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="conductor", description="Application name for logging")

    agent: AgentConfig = Field(default_factory=AgentConfig, description="Agent block defaults")
    memory: MemoryConfig = Field(default_factory=MemoryConfig, description="Memory settings")
    intent_gate: IntentGateConfig = Field(
        default_factory=IntentGateConfig,
        description="Intent gate settings",
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig, description="Tool resolution settings")
    providers: ProvidersConfig = Field(
        default_factory=ProvidersConfig,
        description="Model provider catalogue",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority order, highest first: constructor, environment, TOML."""
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
