"""Model provider catalogue configuration."""

from pydantic import BaseModel, Field


class ModelDefinition(BaseModel):
    """A model known to the catalogue."""

    id: str = Field(..., description="Model identifier as declared on blocks")
    context_window: int | None = Field(
        default=None,
        gt=0,
        description="Context window in tokens, if published",
    )


class ProviderDefinition(BaseModel):
    """A model vendor and the models routed to it."""

    model_patterns: list[str] = Field(
        default_factory=list,
        description="Regular expressions matched against model identifiers",
    )
    models: list[ModelDefinition] = Field(default_factory=list)
    context_information_available: bool = Field(
        default=True,
        description="Whether context windows of this provider can be trusted",
    )


def _default_catalog() -> dict[str, ProviderDefinition]:
    return {
        "openai": ProviderDefinition(
            model_patterns=[r"^gpt", r"^o\d", r"^chatgpt"],
            models=[
                ModelDefinition(id="gpt-4o", context_window=128000),
                ModelDefinition(id="gpt-4o-mini", context_window=128000),
                ModelDefinition(id="gpt-4.1", context_window=1047576),
                ModelDefinition(id="o3", context_window=200000),
                ModelDefinition(id="o4-mini", context_window=200000),
            ],
        ),
        "anthropic": ProviderDefinition(
            model_patterns=[r"^claude"],
            models=[
                ModelDefinition(id="claude-sonnet-4-0", context_window=200000),
                ModelDefinition(id="claude-3-7-sonnet-latest", context_window=200000),
                ModelDefinition(id="claude-3-5-haiku-latest", context_window=200000),
            ],
        ),
        "google": ProviderDefinition(
            model_patterns=[r"^gemini"],
            models=[
                ModelDefinition(id="gemini-2.5-pro", context_window=1048576),
                ModelDefinition(id="gemini-2.5-flash", context_window=1048576),
            ],
        ),
        "vertex": ProviderDefinition(
            model_patterns=[r"^vertex/"],
            models=[
                ModelDefinition(id="vertex/gemini-2.5-pro", context_window=1048576),
                ModelDefinition(id="vertex/gemini-2.5-flash", context_window=1048576),
            ],
        ),
        "azure-openai": ProviderDefinition(
            model_patterns=[r"^azure/"],
            models=[ModelDefinition(id="azure/gpt-4o", context_window=128000)],
        ),
        "bedrock": ProviderDefinition(
            model_patterns=[r"^bedrock/"],
            models=[],
        ),
        "ollama": ProviderDefinition(
            model_patterns=[r"^ollama/"],
            models=[],
            context_information_available=False,
        ),
        "mock": ProviderDefinition(model_patterns=[r"^mock/"]),
    }


class ProvidersConfig(BaseModel):
    """Model vendors and the request settings applied to them."""

    catalog: dict[str, ProviderDefinition] = Field(
        default_factory=_default_catalog,
        description="Provider id to provider definition",
    )
    request_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Provider request timeout in seconds",
    )
