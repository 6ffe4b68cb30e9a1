"""
Small numeric helpers shared across the engine.
"""

from __future__ import annotations

import math
from typing import Any, Optional


def clamp(x: float, lo: float, hi: float) -> float:
    """Clamp x into [lo, hi]."""
    return max(lo, min(hi, x))


def to_num(value: Any, default: float = 0.0) -> float:
    """
    Coerce a provider value to float.

    None, empty strings, non-numeric strings, NaN and infinities all map to
    `default`. Percent strings such as "54%" are read as 54.0.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            out = float(value)
        except OverflowError:
            return default
        return out if math.isfinite(out) else default
    text = str(value).strip().rstrip("%")
    if not text:
        return default
    try:
        out = float(text)
    except ValueError:
        return default
    return out if math.isfinite(out) else default


def to_optional_num(value: Any) -> Optional[float]:
    """Like `to_num`, but keeps the absence of a value as None."""
    if value is None:
        return None
    out = to_num(value, default=math.nan)
    return None if math.isnan(out) else out


def percent_to_prob(value: Any) -> Optional[float]:
    """Parse "45%" / 45 / 0.45 style values into a probability in [0, 1]."""
    if value is None:
        return None
    if isinstance(value, str):
        num = to_optional_num(value)
        return None if num is None else num / 100.0
    num = to_optional_num(value)
    if num is None:
        return None
    return num / 100.0 if num > 1.0 else num
