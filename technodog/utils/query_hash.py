"""Deterministic cache keys for knowledge queries.

The key must match the one the techno.dog web client computes for the same
query, so the hash reproduces JavaScript semantics exactly: the rolling
``(h << 5) - h + c`` update wraps to a signed 32-bit integer after every
step, characters are consumed as UTF-16 code units, and the result is the
absolute value rendered in base 36.

The hash is not collision resistant.  That is acceptable for a soft cache
whose values are derived data, and must not be reused for anything that
indexes correctness-critical records.
"""

from __future__ import annotations

import json
from typing import Any

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    """Wrap *value* to a signed 32-bit integer the way JS bitwise ops do."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return "".join(reversed(digits))


def _utf16_units(text: str) -> list[int]:
    """Return the UTF-16 code units of *text* (``charCodeAt`` order)."""
    raw = text.encode("utf-16-le")
    return [int.from_bytes(raw[i : i + 2], "little") for i in range(0, len(raw), 2)]


def serialize_filters(filters: dict[str, Any] | None) -> str:
    """Serialise *filters* with top-level keys sorted and no whitespace.

    ``None`` yields an empty string; an empty dict yields ``"{}"``.
    Non-ASCII characters are kept verbatim.
    """
    if filters is None:
        return ""
    ordered = {key: filters[key] for key in sorted(filters)}
    return json.dumps(ordered, separators=(",", ":"), ensure_ascii=False)


def rolling_hash(text: str) -> int:
    """Return the signed 32-bit rolling hash of *text* over UTF-16 code units."""
    h = 0
    for unit in _utf16_units(text):
        h = _to_int32((h << 5) - h + unit)
    return h


def generate_query_hash(query_text: str, filters: dict[str, Any] | None = None) -> str:
    """Return the cache key for *query_text* and optional *filters*.

    Parameters
    ----------
    query_text:
        Free-text query.  Lower-cased and stripped before hashing.
    filters:
        Optional filter map.  Key order does not affect the result.

    Returns
    -------
    str
        Base-36 encoding of the absolute 32-bit hash.
    """
    normalized = query_text.lower().strip()
    combined = f"{normalized}|{serialize_filters(filters)}"

    return _to_base36(abs(rolling_hash(combined)))
