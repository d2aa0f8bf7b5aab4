from __future__ import annotations

import json
import math
from typing import Any, Union

JSONValue = Union[
    None,
    bool,
    int,
    float,
    str,
    list["JSONValue"],
    dict[str, "JSONValue"],
]

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class MalformedValueError(ValueError):
    """Raised when a value cannot be carried as JSON."""


def decode(text: str | bytes) -> JSONValue:
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise MalformedValueError(f"Invalid JSON value: {exc}") from exc

    return _canonicalize(parsed)


def encode(value: JSONValue) -> str:
    return json.dumps(
        _canonicalize(value),
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    )


def to_document(value: JSONValue) -> Any:
    """Convert a JSON value into the document shape boto3 sends to Bedrock."""

    return _canonicalize(value)


def from_document(document: Any) -> JSONValue:
    """Convert a Bedrock document (as parsed by botocore) back to a JSON value."""

    return _canonicalize(document)


def _canonicalize(value: Any) -> JSONValue:
    if value is None or isinstance(value, (bool, str)):
        return value

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return _canonical_number(value)

    if isinstance(value, (list, tuple)):
        return [_canonicalize(item) for item in value]

    if isinstance(value, dict):
        canonical: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise MalformedValueError(f"Object keys must be strings, got {key!r}.")
            canonical[key] = _canonicalize(item)
        return canonical

    # botocore parses JSON documents with Decimal in some code paths
    if hasattr(value, "is_finite") and hasattr(value, "as_integer_ratio"):
        return _canonical_number(float(value))

    raise MalformedValueError(f"Unsupported JSON value type: {type(value).__name__}")


def _canonical_number(value: float) -> int | float:
    if math.isnan(value) or math.isinf(value):
        raise MalformedValueError("NaN and infinite numbers are not valid JSON.")

    if value.is_integer() and _INT64_MIN <= value <= _INT64_MAX:
        return int(value)

    return value
