"""Request/response models and failure types shared by LLM executors.

Failures split into two groups. Transport failures (timeouts, DNS and
connection errors) never reached the model; every other ProviderError
is something the vendor reported back.
"""

from typing import Any

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    """One chat turn as handed to a vendor SDK."""

    role: str = Field(..., description="system, user, assistant or tool")
    content: str = Field(..., description="Turn text")


class TokenUsage(BaseModel):
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class LLMToolCall(BaseModel):
    """A tool the model invoked during the run, with its outcome."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    duration_ms: float | None = None


class LLMResponse(BaseModel):
    """Final assistant output of one model run."""

    content: str = Field(..., description="Assistant text")
    model: str = Field(..., description="provider/model that answered")
    finish_reason: str | None = None
    usage: TokenUsage | None = None
    tool_calls: list[LLMToolCall] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Timing and routing details of the run",
    )


# ============================================================================
# Failures
# ============================================================================


class ProviderError(Exception):
    """The vendor rejected or failed the request."""


class AuthenticationError(ProviderError):
    """Credentials were missing or refused."""


class RateLimitError(ProviderError):
    """Quota or rate limit hit; another model may still answer."""


class ModelError(ProviderError):
    """The requested model does not exist or is not enabled."""


class ContentFilterError(ProviderError):
    """The vendor's safety filter blocked the prompt or output."""


class ProviderTimeoutError(ProviderError):
    """Transport: no answer within the request timeout."""


class ProviderConnectionError(ProviderError):
    """Transport: DNS lookup or TCP connection failed."""
