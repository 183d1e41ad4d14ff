"""Structured output contract and validation."""

from conductor.agent.structured.response_format import ResponseFormat, parse_response_format
from conductor.agent.structured.validator import (
    FORMAT_WARNING,
    SchemaReport,
    ValidationOutcome,
    filter_against_schema,
    strip_code_fence,
    validate_structured_output,
)

__all__ = [
    "FORMAT_WARNING",
    "ResponseFormat",
    "SchemaReport",
    "ValidationOutcome",
    "filter_against_schema",
    "parse_response_format",
    "strip_code_fence",
    "validate_structured_output",
]
