from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def to_native_float(value: Any, default: float | None = None) -> float | None:
    if value is None:
        return default
    if isinstance(value, dict):
        # Yahoo wraps some numbers as {"raw": 1.0, "fmt": "1.00"}
        value = value.get("raw")
        if value is None:
            return default
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
        if not value:
            return default
    try:
        casted = float(value)
        if casted != casted or casted in (float("inf"), float("-inf")):
            return default
        return casted
    except (TypeError, ValueError):
        return default


def to_positive_price(value: Any) -> float | None:
    """A price of zero, a negative price, or an unparseable one means "no data"."""
    price = to_native_float(value)
    if price is None or price <= 0:
        return None
    return price


def normalize_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        iso = str(value).replace("Z", "+00:00")
        dt = datetime.fromisoformat(iso)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
