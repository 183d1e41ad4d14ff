"""Parsing of the block's response format setting."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from conductor.observability.logging import get_logger

logger = get_logger(__name__)

REFERENCE_START = "<"
REFERENCE_END = ">"


class ResponseFormat(BaseModel):
    """Structured output contract sent to the provider."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = "response_schema"
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")
    strict: bool = True

    def to_provider(self) -> dict[str, Any]:
        return {"name": self.name, "schema": self.schema_, "strict": self.strict}


def _from_mapping(value: dict[str, Any]) -> ResponseFormat:
    if "schema" not in value and "name" not in value:
        return ResponseFormat(schema=value)
    schema = value.get("schema")
    return ResponseFormat(
        name=value.get("name") or "response_schema",
        schema=schema if isinstance(schema, dict) else {},
        strict=value.get("strict") is not False,
    )


def parse_response_format(raw: Any) -> ResponseFormat | None:
    """Read the response format from a mapping or JSON text.

    A bare JSON schema is wrapped in a strict ``response_schema``
    envelope. Unresolved block references and unparseable text mean no
    structured output.
    """
    if raw is None or raw == "":
        return None

    if isinstance(raw, dict):
        return _from_mapping(raw)

    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith(REFERENCE_START) and REFERENCE_END in text:
            logger.debug("response_format_unresolved_reference", value=text[:50])
            return None
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("response_format_invalid_json", error=str(e), value=text[:200])
            return None
        if isinstance(parsed, dict):
            return _from_mapping(parsed)
        logger.warning("response_format_not_an_object", value_type=type(parsed).__name__)
        return None

    logger.warning("response_format_unexpected_type", value_type=type(raw).__name__)
    return None
