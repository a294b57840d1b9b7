"""Normalization helpers.

Centralizes defensive parsing of loosely typed wire values.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1e11


def safe_float(value: Any) -> float | None:
    """Parse *value* as a finite float, or ``None``.

    Accepts numbers and numeric strings. ``NaN`` and infinities are
    treated as absent data.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if value in ("", "--"):
            return None
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    try:
        text = str(value).strip()
    except ValueError:
        # int too large for str conversion
        return None
    return text if text else None


def normalize_timestamp(value: Any) -> datetime | None:
    """Normalize a wire timestamp to a timezone-aware UTC datetime.

    - ``datetime`` -> UTC (naive values are assumed to be UTC)
    - ISO-8601 strings (with or without ``Z``) -> parsed
    - numbers / numeric strings -> epoch seconds, or milliseconds when
      the value is above 1e11
    - anything else, empty or <= 0 -> ``None``
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.astimezone(UTC) if value.tzinfo is not None else value.replace(tzinfo=UTC)

    numeric = safe_float(value)
    if numeric is not None:
        if numeric <= 0:
            return None
        if numeric > _MS_THRESHOLD:
            numeric /= 1000.0
        try:
            return datetime.fromtimestamp(numeric, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None

    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def is_valid_latitude(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and -90.0 <= value <= 90.0


def is_valid_longitude(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and -180.0 <= value <= 180.0
