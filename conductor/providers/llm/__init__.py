"""Model execution for agent blocks.

LLMExecutor takes a "provider/model" route, builds the matching Agno model
with per-request credentials and sampling options, and reports failures
as ProviderError subclasses (transport or vendor-reported).

Routes: openai, azure, anthropic, google, vertex, bedrock, groq, ollama,
openrouter. "mock/..." answers locally and needs no vendor SDK.
"""

from conductor.providers.llm.base import (
    AuthenticationError,
    ContentFilterError,
    LLMMessage,
    LLMResponse,
    LLMToolCall,
    ModelError,
    ProviderConnectionError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TokenUsage,
)
from conductor.providers.llm.executor import LLMExecutor, create_executor
from conductor.providers.llm.mock import MockLLMExecutor
from conductor.providers.llm.tokens import count_tokens, estimate_tokens

__all__ = [
    # Data models
    "LLMMessage",
    "LLMResponse",
    "LLMToolCall",
    "TokenUsage",
    # Errors
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "ModelError",
    "ContentFilterError",
    "ProviderTimeoutError",
    "ProviderConnectionError",
    # Executor (primary interface)
    "LLMExecutor",
    "create_executor",
    # Tokens
    "count_tokens",
    "estimate_tokens",
    # Testing
    "MockLLMExecutor",
]
