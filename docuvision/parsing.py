"""Parsing of JSON embedded in model output.

Models are asked to return bare JSON but frequently wrap it in a markdown
code fence. The contract here is: strip one fenced block if present, parse
what is left as JSON, validate it against the declared schema. Every failure
becomes a :class:`ParseError` carrying the raw text.
"""

import json
import re
from typing import Any, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from docuvision.errors import ParseError

T = TypeVar("T")

_FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*\s*\n?(.*?)\s*```", re.S)


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced code block, or ``text`` trimmed."""
    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_model_json(text: str, schema: Type[T]) -> T:
    """Parse ``text`` into ``schema`` (a pydantic model or any typed shape)."""
    body = strip_code_fence(text)
    if not body:
        raise ParseError("Model returned an empty response", raw_text=text)

    try:
        data: Any = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Model response is not valid JSON: {exc}", raw_text=text) from exc

    try:
        return TypeAdapter(schema).validate_python(data)
    except ValidationError as exc:
        raise ParseError(
            f"Model response does not match the expected shape: {exc.error_count()} errors",
            raw_text=text,
        ) from exc
