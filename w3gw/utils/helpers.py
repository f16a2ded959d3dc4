"""Quantity helpers shared by the wallet backends."""

from __future__ import annotations

import json
from decimal import ROUND_FLOOR, Decimal
from typing import Any


def to_quantity(value: int) -> str:
    """Encode an integer as a minimal `0x` hex quantity (`0x0` for zero)."""
    if value < 0:
        raise ValueError(f"Negative quantity: {value}")
    return hex(value)


def from_quantity(value: Any) -> int | None:
    """Decode a hex string, decimal string or int into an int; None stays None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text, 16) if len(text) > 2 else 0
    return int(text)


def scale(value: int, factor: float) -> int:
    """Multiply an integer quantity by a float factor, rounding down."""
    return int((Decimal(value) * Decimal(str(factor))).to_integral_value(rounding=ROUND_FLOOR))


def truncate(value: Any, limit: int = 256) -> str:
    """JSON-encode a value for logging, cut to `limit` characters."""
    try:
        text = json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = str(value)
    if len(text) > limit:
        return text[:limit] + "..."
    return text
