"""
Answer-type schemas and final-answer parsing.

The ``Agent`` accepts any type pydantic can validate as the answer type.
``str`` means free text; every other type is advertised to the backend as a
JSON schema and the final reply is validated against it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from pydantic import PydanticSchemaGenerationError, PydanticUserError, TypeAdapter, ValidationError

from agentai.conversation.errors import MalformedAnswerError, SchemaGenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Top-level schema keys not every backend accepts (Gemini rejects both).
STRIPPED_SCHEMA_KEYS: frozenset[str] = frozenset({"$schema", "title"})


def is_plain_text(answer_type: Any) -> bool:
    """Return True if *answer_type* means an unstructured text answer."""
    return answer_type is str


def strip_schema_metadata(schema: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *schema* without the top-level keys in ``STRIPPED_SCHEMA_KEYS``."""
    return {k: v for k, v in schema.items() if k not in STRIPPED_SCHEMA_KEYS}


def json_schema_of(tp: Any) -> dict[str, Any]:
    """Return the JSON schema of *tp* with backend-unfriendly metadata removed.

    Raises:
        SchemaGenerationError: If pydantic cannot build a schema for *tp*.
    """
    try:
        schema = TypeAdapter(tp).json_schema()
    except (PydanticSchemaGenerationError, PydanticUserError) as exc:
        raise SchemaGenerationError(f"Cannot generate a JSON schema for {tp!r}: {exc}") from exc
    return strip_schema_metadata(schema)


def response_schema(answer_type: Any) -> dict[str, Any] | None:
    """Return the response-format schema for *answer_type*, or ``None`` for plain text."""
    if is_plain_text(answer_type):
        return None
    return json_schema_of(answer_type)


def parse_answer(text: str, answer_type: type[T]) -> T:
    """Validate the model's final *text* against *answer_type*.

    Plain-text answers are first wrapped as a JSON string literal, so both
    text and structured answers go through the same JSON validation path.

    Raises:
        MalformedAnswerError: If *text* does not validate.
    """
    payload = json.dumps(text) if is_plain_text(answer_type) else text
    try:
        return TypeAdapter(answer_type).validate_json(payload)
    except ValidationError as exc:
        logger.debug("Final answer failed validation: %s", exc)
        raise MalformedAnswerError(
            f"Model answer does not match {getattr(answer_type, '__name__', answer_type)!s}: "
            f"{exc.error_count()} validation error(s)",
            text=text,
        ) from exc
