"""Unit tests for agentai.conversation.schema."""

from __future__ import annotations

from typing import Literal

import pytest
from pydantic import BaseModel

from agentai.conversation.errors import MalformedAnswerError, SchemaGenerationError
from agentai.conversation.schema import (
    is_plain_text,
    json_schema_of,
    parse_answer,
    response_schema,
    strip_schema_metadata,
)


class Forecast(BaseModel):
    city: str
    temperature: float
    sky: Literal["clear", "cloudy", "rain"]


class Opaque:
    pass


def test_only_str_is_plain_text() -> None:
    assert is_plain_text(str)
    assert not is_plain_text(Forecast)
    assert not is_plain_text(int)


def test_strip_schema_metadata_removes_top_level_keys_only() -> None:
    schema = {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": "Forecast",
        "type": "object",
        "properties": {"city": {"title": "City", "type": "string"}},
    }

    stripped = strip_schema_metadata(schema)

    assert "$schema" not in stripped
    assert "title" not in stripped
    assert stripped["properties"]["city"]["title"] == "City"
    # The input is left untouched.
    assert schema["title"] == "Forecast"


def test_json_schema_of_model() -> None:
    schema = json_schema_of(Forecast)

    assert "title" not in schema
    assert schema["type"] == "object"
    assert set(schema["required"]) == {"city", "temperature", "sky"}
    assert schema["properties"]["sky"]["enum"] == ["clear", "cloudy", "rain"]


def test_json_schema_of_unsupported_type_raises() -> None:
    with pytest.raises(SchemaGenerationError):
        json_schema_of(Opaque)


def test_response_schema_is_none_for_text() -> None:
    assert response_schema(str) is None


def test_response_schema_for_list_type() -> None:
    schema = response_schema(list[int])

    assert schema == {"type": "array", "items": {"type": "integer"}}


def test_parse_answer_text_is_returned_verbatim() -> None:
    text = 'He said "hi"\nand left.'
    assert parse_answer(text, str) == text


def test_parse_answer_structured() -> None:
    answer = parse_answer('{"city": "Oslo", "temperature": -3.5, "sky": "clear"}', Forecast)

    assert answer == Forecast(city="Oslo", temperature=-3.5, sky="clear")


def test_parse_answer_scalar_type() -> None:
    assert parse_answer("42", int) == 42


def test_parse_answer_invalid_json_raises() -> None:
    with pytest.raises(MalformedAnswerError) as exc_info:
        parse_answer("It is sunny in Oslo.", Forecast)
    assert exc_info.value.text == "It is sunny in Oslo."


def test_parse_answer_schema_mismatch_raises() -> None:
    with pytest.raises(MalformedAnswerError, match="Forecast"):
        parse_answer('{"city": "Oslo", "temperature": 1, "sky": "snow"}', Forecast)
