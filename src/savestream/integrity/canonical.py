"""
Compact JSON encoding for info segments and info patches.

Key order is kept as given so a decoded info segment matches the bytes the
virtual machine wrote.
"""

import json
import math
from typing import Any

from ..errors import MalformedSnapshotError


def compact_json(obj: Any) -> bytes:
    """
    Encode an object to compact JSON bytes.

    Rules:
    - Keys in insertion order (not sorted)
    - No whitespace
    - UTF-8 encoding, non-ASCII kept literal
    - Lone surrogates written as \\uXXXX escapes
    - NaN and Infinity rejected
    """
    json_str = json.dumps(
        obj,
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    )
    # surrogates only occur inside JSON strings, where \uXXXX is valid
    return json_str.encode('utf-8', 'backslashreplace')


def _reject_constant(token: str):
    raise ValueError(f"{token} is not a JSON number")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number {text} is out of range")
    return value


def load_json(blob: bytes) -> Any:
    """
    Parse UTF-8 JSON bytes that compact_json can write back.

    Raises ValueError for invalid UTF-8, invalid JSON, NaN, Infinity and
    numbers that overflow a float.
    """
    return json.loads(
        bytes(blob).decode('utf-8'),
        parse_constant=_reject_constant,
        parse_float=_finite_float,
    )


def parse_info(info_block: bytes) -> dict:
    """
    Parse an info segment into a dict.

    Raises MalformedSnapshotError if the bytes are not a UTF-8 JSON object.
    """
    try:
        info = load_json(info_block)
    except ValueError as e:
        raise MalformedSnapshotError(f"info segment is not valid JSON: {e}") from e

    if not isinstance(info, dict):
        raise MalformedSnapshotError(
            f"info segment must be a JSON object, got {type(info).__name__}"
        )
    return info
