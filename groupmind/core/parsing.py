"""
Strict decoding of LLM output.

`decode` never raises on bad model output: it returns either `Parsed` with a
validated value or `ParseFailure` with a reason, and callers branch on it.
"""

import json
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError


@dataclass(frozen=True)
class Parsed:
    value: Any
    ok = True


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    raw: str = ""
    ok = False


def clean_json_response(response):
    """Strip code fences and any prose around the outermost JSON object."""
    response = response.strip()

    if response.startswith("```json"):
        response = response[7:]
    elif response.startswith("```"):
        response = response[3:]
    if response.endswith("```"):
        response = response[:-3]
    response = response.strip()

    start, end = response.find("{"), response.rfind("}")
    if start != -1 and end > start:
        response = response[start:end + 1]
    return response


def decode(text, model):
    """Decode `text` as JSON and validate it against the pydantic `model`."""
    if text is None or not text.strip():
        return ParseFailure("empty response", text or "")
    cleaned = clean_json_response(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        return ParseFailure(f"invalid JSON: {e.msg}", text)
    try:
        return Parsed(model.model_validate(data))
    except ValidationError as e:
        return ParseFailure(f"schema mismatch: {e.error_count()} error(s), first: {e.errors()[0]['msg']}", text)
