"""
Canonical JSON serialization for signature stability.

Object keys are sorted recursively (code-point order), arrays keep their
order, and there is no insignificant whitespace. Two semantically equal
records always serialize to the same UTF-8 bytes.
"""

import json
from typing import Any


def canonicalize(record: Any) -> bytes:
    """
    Serialize a record to canonical JSON bytes.

    Args:
        record: JSON-compatible value (dicts, lists, str, int, float, bool, None)

    Returns:
        UTF-8 encoded JSON with sorted keys and no spaces

    Raises:
        ValueError: For NaN or infinite floats
        TypeError: For values JSON cannot represent
    """
    return json.dumps(
        record,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def parse_canonical(data: bytes) -> Any:
    """Parse canonical JSON bytes back into a record."""
    return json.loads(data.decode("utf-8"))
