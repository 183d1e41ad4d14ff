"""Validation of model output against a requested JSON schema.

Mismatches are observability signals. The filtered object is returned
even when required properties are missing, and unparseable output falls
back to the plain text shape with a warning annotation.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from conductor.agent.structured.response_format import ResponseFormat
from conductor.domain.errors import StructuredOutputMismatch
from conductor.observability.logging import get_logger
from conductor.observability.metrics import STRUCTURED_OUTPUT_MISMATCHES

logger = get_logger(__name__)

FORMAT_WARNING = (
    "LLM did not adhere to the specified structured response format. "
    "Expected valid JSON but received malformed content. Falling back to standard format."
)

_FENCE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL | re.IGNORECASE)


@dataclass
class SchemaReport:
    """Properties dropped from closed objects and required ones missing.

    Paths are dotted, with ``[]`` marking array items.
    """

    dropped: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


@dataclass
class ValidationOutcome:
    data: Any = None
    report: SchemaReport = field(default_factory=SchemaReport)
    mismatch: StructuredOutputMismatch | None = None

    @property
    def warning(self) -> str | None:
        return FORMAT_WARNING if self.mismatch is not None else None


def strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _FENCE.match(stripped)
    return match.group(1).strip() if match else stripped


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def filter_against_schema(
    data: Any,
    schema: Any,
    strict: bool = True,
    *,
    path: str = "",
    report: SchemaReport | None = None,
) -> tuple[Any, SchemaReport]:
    """Keep only what the schema declares, recursively.

    Object values keep the properties listed in ``properties``. When the
    schema is closed (strict and ``additionalProperties`` false) every
    dropped property is logged and reported. Missing required properties
    are logged and reported but never added.
    """
    report = report if report is not None else SchemaReport()
    if not isinstance(schema, dict):
        return data, report

    properties = schema.get("properties")
    if schema.get("type") == "object" and isinstance(properties, dict) and isinstance(data, dict):
        closed = strict and schema.get("additionalProperties") is False
        filtered: dict[str, Any] = {}
        for key, value in data.items():
            if key in properties:
                filtered[key], _ = filter_against_schema(
                    value, properties[key], strict, path=_join(path, key), report=report
                )
            elif closed:
                report.dropped.append(_join(path, key))
                logger.warning(
                    "structured_output_property_dropped",
                    property=_join(path, key),
                    value=value[:50] if isinstance(value, str) else value,
                )

        required = schema.get("required")
        if isinstance(required, list):
            for name in required:
                if name not in filtered:
                    report.missing.append(_join(path, name))
                    logger.warning(
                        "structured_output_required_missing",
                        property=_join(path, name),
                        available=list(filtered),
                    )
        return filtered, report

    items = schema.get("items")
    if schema.get("type") == "array" and items is not None and isinstance(data, list):
        filtered_items = [
            filter_against_schema(item, items, strict, path=f"{path}[]", report=report)[0]
            for item in data
        ]
        return filtered_items, report

    return data, report


def validate_structured_output(content: str, response_format: ResponseFormat) -> ValidationOutcome:
    """Parse content as JSON and filter it against the response schema."""
    text = strip_code_fence(content or "")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        STRUCTURED_OUTPUT_MISMATCHES.inc()
        logger.error(
            "structured_output_not_json",
            content=text[:200] + ("..." if len(text) > 200 else ""),
            schema_name=response_format.name,
            error=str(e),
        )
        return ValidationOutcome(
            mismatch=StructuredOutputMismatch(FORMAT_WARNING, error=str(e)),
        )

    data, report = filter_against_schema(
        parsed, response_format.schema_ or None, response_format.strict
    )
    return ValidationOutcome(data=data, report=report)
