"""Memory configuration models."""

from pydantic import BaseModel, Field


class MemoryConfig(BaseModel):
    """Long-term memory behaviour and memory API client settings."""

    trigger_types: list[str] = Field(
        default_factory=lambda: ["chat"],
        description="Trigger types for which memory is searched and written",
    )
    context_window_ratio: float = Field(
        default=0.6,
        gt=0.0,
        le=1.0,
        description="Share of the model context window available to memory",
    )
    default_token_limit: int = Field(
        default=32000,
        gt=0,
        description="Memory token limit when the model context window is unknown",
    )
    max_conversation_id_length: int = Field(
        default=255,
        gt=0,
        description="Longest accepted conversation identifier",
    )
    max_message_content_bytes: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Largest message stored to memory (UTF-8 bytes)",
    )

    # Memory API client
    api_base_url: str = Field(
        default="http://localhost:8888/mem",
        description="Base URL of the memory API",
    )
    search_limit: int = Field(default=5, gt=0, description="Records per search")
    timeout: float = Field(default=10.0, gt=0, description="Request timeout in seconds")
