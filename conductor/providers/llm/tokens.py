"""Token counting for memory budgeting."""

from functools import lru_cache

import tiktoken
import tiktoken.core

from conductor.observability.logging import get_logger

logger = get_logger(__name__)

ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=1)
def _encoding() -> tiktoken.core.Encoding | None:
    try:
        return tiktoken.get_encoding(ENCODING_NAME)
    except Exception as e:
        # Encoding files are fetched on first use; offline hosts fall back
        # to the estimate below.
        logger.warning("token_encoding_unavailable", encoding=ENCODING_NAME, error=str(e))
        return None


def estimate_tokens(text: str) -> int:
    """Rough estimate (~4 chars per token)."""
    return max(1, len(text) // 4) if text else 0


def count_tokens(text: str) -> int:
    """Count tokens in text with cl100k_base, estimating when unavailable."""
    if not text:
        return 0
    enc = _encoding()
    if enc is None:
        return estimate_tokens(text)
    return len(enc.encode(text, disallowed_special=()))
