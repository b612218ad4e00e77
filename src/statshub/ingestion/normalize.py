"""Normalization helpers.

Snapshots are untrusted. These helpers turn malformed optional values into
``None`` (or an empty list) so the merger can treat them as absent.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def string_list(value: Any) -> list[str]:
    """Return the string items of *value*, or ``[]`` when it is not a list."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


def union_ordered(existing: list[str] | tuple[str, ...], incoming: list[str]) -> list[str]:
    """Set union that keeps first-seen order so the output is stable."""
    seen = dict.fromkeys(existing)
    for item in incoming:
        seen.setdefault(item, None)
    return list(seen)
