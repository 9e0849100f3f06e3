"""Rounding helpers for reported ratios.

Dashboards expect half-up rounding (2.5 -> 3), not Python's round-half-even.
"""

from __future__ import annotations

import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round to ``ndigits`` decimals, halves toward positive infinity."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def percentage(part: int, whole: int) -> int:
    """``part / whole * 100`` as a half-up integer; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))


def one_decimal(numerator: float, denominator: float) -> float:
    """Ratio rounded half-up to one decimal; 0 when the denominator is 0."""
    if not denominator:
        return 0
    return round_half_up(numerator / denominator, 1)
