"""Tool resolution configuration models."""

from pydantic import BaseModel, Field


class ToolsConfig(BaseModel):
    """Capability resolver and tool backend settings."""

    discovery_max_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts per tool server discovery call",
    )
    discovery_backoff_ms: int = Field(
        default=100,
        ge=0,
        description="Pause between discovery attempts",
    )
    retryable_error_markers: list[str] = Field(
        default_factory=lambda: ["session", "400", "404"],
        description="Lower-case fragments marking a discovery error as retryable",
    )
    function_timeout_ms: int = Field(
        default=10000,
        gt=0,
        description="Default timeout for function tool code",
    )
    custom_tool_prefix: str = Field(default="custom_")

    # Tool server / registry client
    api_base_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the tool server and custom tool APIs",
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    api_token: str | None = Field(
        default=None,
        description="Bearer token for the internal tool API",
    )
