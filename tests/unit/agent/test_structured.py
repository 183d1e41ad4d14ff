"""Tests for response format parsing and structured output validation."""

import json

import pytest

from conductor.agent.structured import (
    FORMAT_WARNING,
    ResponseFormat,
    filter_against_schema,
    parse_response_format,
    strip_code_fence,
    validate_structured_output,
)

PERSON_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "age": {"type": "integer"},
        "pets": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"kind": {"type": "string"}},
                "additionalProperties": False,
            },
        },
    },
    "required": ["name", "age"],
    "additionalProperties": False,
}


class TestParseResponseFormat:
    """Reading the block's response format input."""

    @pytest.mark.parametrize("raw", [None, "", "<agent1.schema>", "{not json", "[1, 2]", 42])
    def test_no_structured_output(self, raw) -> None:
        assert parse_response_format(raw) is None

    def test_bare_schema_is_wrapped(self) -> None:
        parsed = parse_response_format(json.dumps(PERSON_SCHEMA))

        assert parsed.name == "response_schema"
        assert parsed.strict is True
        assert parsed.schema_ == PERSON_SCHEMA

    def test_envelope(self) -> None:
        parsed = parse_response_format({"name": "person", "schema": PERSON_SCHEMA, "strict": False})

        assert parsed.to_provider() == {"name": "person", "schema": PERSON_SCHEMA, "strict": False}

    def test_envelope_with_invalid_schema(self) -> None:
        parsed = parse_response_format({"name": "person", "schema": "oops"})
        assert parsed.schema_ == {}
        assert parsed.strict is True


class TestFilterAgainstSchema:
    """Recursive filtering of model output."""

    def test_closed_object_drops_and_reports(self) -> None:
        data, report = filter_against_schema({"name": "Ada", "age": 36, "email": "a@x"}, PERSON_SCHEMA)

        assert data == {"name": "Ada", "age": 36}
        assert report.dropped == ["email"]
        assert report.missing == []

    def test_open_object_keeps_declared_only_without_report(self) -> None:
        schema = {**PERSON_SCHEMA, "additionalProperties": True}
        data, report = filter_against_schema({"name": "Ada", "age": 36, "email": "a@x"}, schema)

        assert data == {"name": "Ada", "age": 36}
        assert report.dropped == []

    def test_non_strict_does_not_report(self) -> None:
        _, report = filter_against_schema({"name": "Ada", "age": 1, "x": 1}, PERSON_SCHEMA, strict=False)
        assert report.dropped == []

    def test_array_items_filtered(self) -> None:
        data, report = filter_against_schema(
            {"name": "Ada", "age": 36, "pets": [{"kind": "cat", "name": "Tom"}, {"kind": "dog"}]},
            PERSON_SCHEMA,
        )

        assert data["pets"] == [{"kind": "cat"}, {"kind": "dog"}]
        assert report.dropped == ["pets[].name"]

    def test_missing_required_reported_not_added(self) -> None:
        data, report = filter_against_schema({"name": "Ada"}, PERSON_SCHEMA)

        assert data == {"name": "Ada"}
        assert report.missing == ["age"]

    def test_non_object_schema_passes_through(self) -> None:
        data, _ = filter_against_schema("text", {"type": "string"})
        assert data == "text"


class TestValidateStructuredOutput:
    """Parsing model content against the response format."""

    @pytest.fixture
    def response_format(self) -> ResponseFormat:
        return ResponseFormat(schema=PERSON_SCHEMA)

    def test_valid_json(self, response_format) -> None:
        outcome = validate_structured_output('{"name": "Ada", "age": 36, "extra": 1}', response_format)

        assert outcome.data == {"name": "Ada", "age": 36}
        assert outcome.report.dropped == ["extra"]
        assert outcome.warning is None

    def test_code_fence_stripped(self, response_format) -> None:
        outcome = validate_structured_output('```json\n{"name": "Ada", "age": 36}\n```', response_format)
        assert outcome.data == {"name": "Ada", "age": 36}

    def test_not_json_is_a_mismatch(self, response_format) -> None:
        outcome = validate_structured_output("Ada is 36 years old.", response_format)

        assert outcome.data is None
        assert outcome.mismatch is not None
        assert outcome.warning == FORMAT_WARNING

    def test_empty_schema_keeps_everything(self) -> None:
        outcome = validate_structured_output('{"a": 1}', ResponseFormat())
        assert outcome.data == {"a": 1}


def test_strip_code_fence_plain_text() -> None:
    assert strip_code_fence("  plain  ") == "plain"
    assert strip_code_fence("```\n[1]\n```") == "[1]"
