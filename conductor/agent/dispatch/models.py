"""Provider-agnostic request envelope."""

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict

from conductor.agent.structured.response_format import ResponseFormat
from conductor.domain.errors import ConfigurationError
from conductor.domain.execution import AgentInputs
from conductor.domain.messages import Message
from conductor.tools.descriptor import ToolDescriptor


def _unset(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _number(name: str, value: Any, cast: type) -> Any:
    if _unset(value):
        return None
    try:
        return cast(float(value)) if cast is int else cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {name}: {value!r}", field=name) from e


class SamplingParams(BaseModel):
    """Sampling controls with empty values normalized to unset."""

    model_config = ConfigDict(frozen=True)

    temperature: float | None = None
    max_tokens: int | None = None
    reasoning_effort: str | None = None
    verbosity: str | None = None
    thinking_level: str | None = None
    previous_interaction_id: str | None = None

    @classmethod
    def from_inputs(cls, inputs: AgentInputs) -> "SamplingParams":
        """Normalize editor values.

        Empty strings and None mean "let the vendor decide". A max token
        count below 1 is dropped rather than forwarded.

        Raises:
            ConfigurationError: If a numeric control is not a number
        """
        max_tokens = _number("max_tokens", inputs.max_tokens, int)
        return cls(
            temperature=_number("temperature", inputs.temperature, float),
            max_tokens=max_tokens if max_tokens and max_tokens > 0 else None,
            reasoning_effort=None if _unset(inputs.reasoning_effort) else inputs.reasoning_effort,
            verbosity=None if _unset(inputs.verbosity) else inputs.verbosity,
            thinking_level=None if _unset(inputs.thinking_level) else inputs.thinking_level,
            previous_interaction_id=inputs.previous_interaction_id or None,
        )

    def options(self) -> dict[str, Any]:
        """Vendor options beyond temperature and max tokens, unset ones omitted."""
        values = {
            "reasoning_effort": self.reasoning_effort,
            "verbosity": self.verbosity,
            "thinking_level": self.thinking_level,
            "previous_interaction_id": self.previous_interaction_id,
        }
        return {key: value for key, value in values.items() if value is not None}


class Credentials(BaseModel):
    """Per-request vendor credentials."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    azure_endpoint: str | None = None
    azure_api_version: str | None = None
    vertex_project: str | None = None
    vertex_location: str | None = None
    vertex_credential: str | None = None
    vertex_access_token: str | None = None
    bedrock_access_key_id: str | None = None
    bedrock_secret_key: str | None = None
    bedrock_region: str | None = None

    @classmethod
    def from_inputs(cls, inputs: AgentInputs) -> "Credentials":
        return cls(
            api_key=inputs.api_key or None,
            azure_endpoint=inputs.azure_endpoint or None,
            azure_api_version=inputs.azure_api_version or None,
            vertex_project=inputs.vertex_project or None,
            vertex_location=inputs.vertex_location or None,
            vertex_credential=inputs.vertex_credential or None,
            bedrock_access_key_id=inputs.bedrock_access_key_id or None,
            bedrock_secret_key=inputs.bedrock_secret_key or None,
            bedrock_region=inputs.bedrock_region or None,
        )

    def for_executor(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, exclude={"vertex_credential"})


@dataclass(frozen=True)
class ProviderRequest:
    """Everything one provider call needs, fixed at construction.

    ``model`` is the id declared on the block; ``route`` is the
    ``provider/model`` string the executor dispatches on.
    """

    provider: str
    model: str
    route: str
    messages: tuple[Message, ...]
    tools: tuple[ToolDescriptor, ...] = ()
    sampling: SamplingParams = field(default_factory=SamplingParams)
    response_format: ResponseFormat | None = None
    stream: bool = False
    credentials: Credentials = field(default_factory=Credentials)

    # Attribution
    block_id: str | None = None
    workflow_id: str | None = None
    workspace_id: str | None = None
    user_id: str | None = None

    @property
    def forced_tools(self) -> tuple[ToolDescriptor, ...]:
        return tuple(tool for tool in self.tools if tool.forced)
