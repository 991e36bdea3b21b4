# jsonpilot/json_document.py

import copy
import json
import math
from dataclasses import dataclass
from typing import Any

import commentjson

from jsonpilot.errors import DocumentNotJSON

JSON_LANGUAGES = ("json", "jsonc")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _finite_float(literal: str) -> float:
    number = float(literal)
    if math.isinf(number):
        raise ValueError(f"Number out of range: {literal}")
    return number


# NaN, Infinity and overflowing floats are accepted by `json` but are not JSON.
STRICT_LOAD_OPTIONS = {"parse_constant": _reject_constant, "parse_float": _finite_float}


def strict_json_loads(text: str) -> Any:
    """
    `json.loads` limited to RFC 8259. Raises ValueError (JSONDecodeError for
    syntax errors) on anything else.
    """
    return json.loads(text, **STRICT_LOAD_OPTIONS)


def serialize_json(value: Any) -> str:
    """
    Canonical text form used for every preview, so diffs stay reproducible.
    Raises ValueError for values that have no JSON form.
    """
    return json.dumps(value, indent=2, ensure_ascii=False, allow_nan=False)


def parse_json_text(text: str, language: str = "json") -> Any:
    """
    Parse editor text. `jsonc` files may carry comments; plain `json` must be strict.
    Raises DocumentNotJSON with the parser message on failure.
    """
    if text is None or not str(text).strip():
        raise DocumentNotJSON("empty content")
    if language == "jsonc":
        try:
            return commentjson.loads(text, **STRICT_LOAD_OPTIONS)
        except Exception as e:
            raise DocumentNotJSON(str(e)) from e
    try:
        return strict_json_loads(text)
    except ValueError as e:
        raise DocumentNotJSON(str(e)) from e


def is_valid_json(text: str, language: str = "json") -> bool:
    try:
        parse_json_text(text, language)
    except DocumentNotJSON:
        return False
    return True


@dataclass(frozen=True)
class JsonDocument:
    """
    Immutable snapshot of an editor buffer: the exact text plus its parsed value.
    """
    text: str
    value: Any
    language: str = "json"

    @classmethod
    def parse(cls, text: str, language: str = "json") -> "JsonDocument":
        return cls(text=text, value=parse_json_text(text, language), language=language)

    def fresh_value(self) -> Any:
        return copy.deepcopy(self.value)

    def canonical_text(self) -> str:
        return serialize_json(self.value)


@dataclass(frozen=True)
class DecodedValue:
    value: Any
    decoded: bool


def decode_operation_value(raw: Any) -> DecodedValue:
    """
    Wire values arrive as strings. Try them as JSON first (objects, arrays,
    numbers, booleans, null); anything that does not decode stays a literal string.
    """
    if raw is None or raw == "":
        return DecodedValue(raw, False)
    if not isinstance(raw, str):
        return DecodedValue(raw, False)
    try:
        return DecodedValue(strict_json_loads(raw), True)
    except ValueError:
        return DecodedValue(raw, False)
