"""Agent block configuration models."""

from pydantic import BaseModel, Field


class AgentConfig(BaseModel):
    """Defaults applied to every agent block execution."""

    default_model: str = Field(
        default="gpt-4o",
        description="Model used when the block does not name one",
    )
    default_system_prompt: str = Field(
        default="You are a helpful assistant.",
        description="System prompt used when no source supplies system content",
    )
    fact_memory_heading: str = Field(
        default="Consider these user preferences when you are giving user response -",
        description="Heading placed above fact memories in the system prompt",
    )
    stream: bool = Field(
        default=True,
        description="Stream replies when the caller asks for it and selected the block",
    )
