"""Structured logging for agent block execution.

Events are rendered as JSON in deployed environments and as colored
console lines locally. Execution identifiers (block, workflow,
conversation) travel through structlog contextvars, and provider
credentials are scrubbed before an event is rendered.
"""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, cast

import structlog
from structlog.types import EventDict, WrappedLogger

REDACTED = "[REDACTED]"

# Compared against lowercased event keys
CREDENTIAL_KEYS: frozenset[str] = frozenset({
    "api_key",
    "apikey",
    "authorization",
    "password",
    "secret",
    "token",
    "access_token",
    "refresh_token",
    "credential",
    "credentials",
    "vertex_credential",
    "bedrock_access_key_id",
    "bedrock_secret_key",
    "private_key",
    "email",
})

# (pattern, replacement) applied in order to every string value
VALUE_SCRUBBERS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[EMAIL]"),
    (re.compile(r"Bearer\s+[A-Za-z0-9._\-]+"), f"Bearer {REDACTED}"),
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{16,}"), "[API_KEY]"),
)


class PIIRedactor:
    """structlog processor scrubbing credentials and e-mail addresses.

    Values under a known credential key are replaced outright; every
    other string, at any nesting depth, is passed through the value
    scrubbers.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._scrub(dict(event_dict)))

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                key: REDACTED if str(key).lower() in CREDENTIAL_KEYS else self._scrub(item)
                for key, item in value.items()
            }
        if isinstance(value, list | tuple):
            return type(value)(self._scrub(item) for item in value)
        if isinstance(value, str):
            for pattern, replacement in VALUE_SCRUBBERS:
                value = pattern.sub(replacement, value)
        return value


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structlog for the process.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json" for deployed environments, "console" for local runs
        redact_pii: Scrub credentials and e-mail addresses from events
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if redact_pii:
        processors.append(PIIRedactor())
    processors.append(
        structlog.processors.JSONRenderer()
        if format == "json"
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    level_num = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))


@contextmanager
def execution_log_context(**context: Any) -> Iterator[None]:
    """Bind execution identifiers to every log event inside the block.

    None values are dropped so unset identifiers do not clutter events.
    """
    bound = {key: value for key, value in context.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield
