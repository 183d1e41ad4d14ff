"""Intent gate configuration models."""

from pydantic import BaseModel, Field


class IntentGateConfig(BaseModel):
    """RUN/SKIP pre-classifier settings."""

    enabled: bool = Field(default=True, description="Consult the intent gate")
    classifier_model: str = Field(
        default="openai/gpt-4o",
        description="Fast model that returns RUN or SKIP",
    )
    classifier_max_tokens: int = Field(default=10, gt=0)
    classifier_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Seconds before the classifier is abandoned (RUN)",
    )
    reply_model: str = Field(
        default="openai/gpt-4o",
        description="Model that writes the reply on SKIP",
    )
    reply_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    reply_max_tokens: int = Field(default=2048, gt=0)
    empty_reply: str = Field(
        default="I was unable to generate a response from the conversation history.",
    )
    failed_reply: str = Field(
        default="I was unable to generate a response. Please try again.",
    )
