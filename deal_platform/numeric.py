"""
deal_platform/numeric.py
========================
Rounding and guarded-arithmetic helpers shared by every pipeline stage.

Whole-unit rounding sends halves toward +inf; decimal rounding is half-up on
the decimal representation of the float.
"""
from __future__ import annotations
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +inf (2.5 → 3, -2.5 → -2)."""
    return int(math.floor(value + 0.5))


def round_to(value: float, places: int = 2) -> float:
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def safe_div(num: Optional[float], den: Optional[float]) -> Optional[float]:
    if num is None or den is None or den == 0:
        return None
    return num / den


def or_zero(value: Optional[float]) -> float:
    return 0.0 if value is None else float(value)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_score(value: float) -> int:
    """Pin a rounded score onto the 0–100 scale."""
    return int(clamp(value, 0, 100))
