"""Normalization helpers.

Centralizes defensive parsing of values read back from storage or
returned by external services.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
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


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def safe_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off", ""}:
            return False
    return default


def safe_latlng(value: Any) -> tuple[float, float] | None:
    """Coerce a ``[lat, lng]`` pair into a float tuple, or ``None``."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    lat = safe_float(value[0])
    lng = safe_float(value[1])
    if lat is None or lng is None:
        return None
    return (lat, lng)
