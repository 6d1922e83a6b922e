"""Shared coercion helpers for stored JSON and loosely-typed LLM output."""
from __future__ import annotations

import json
from typing import Any

_MISSING = object()


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def as_str(value: Any) -> str:
    """Coerce to a stripped string; ``None`` becomes empty."""
    if value is None:
        return ""
    return str(value).strip()


def as_str_list(value: Any) -> list[str]:
    """Keep *value* only if it is a list, stringifying its non-empty items."""
    if not isinstance(value, list):
        return []
    return [as_str(v) for v in value if v is not None and as_str(v)]


def as_number(value: Any, default: float, low: float, high: float) -> float:
    """Coerce to float clamped to [low, high]; unparseable input gives *default*."""
    if isinstance(value, bool):
        return default
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    if num != num:  # NaN
        return default
    return max(low, min(high, num))


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}
