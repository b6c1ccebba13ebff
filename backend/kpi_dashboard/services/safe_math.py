"""Division helpers shared by the KPI and cost engines."""

from __future__ import annotations

import math


def safe_divide(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Return ``numerator / denominator`` or ``fallback`` when the denominator is zero."""

    if not denominator:
        return fallback
    result = numerator / denominator
    if math.isnan(result) or math.isinf(result):
        return fallback
    return result


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def close_rate(numerator: float, denominator: float) -> float:
    """Percentage of ``numerator`` over ``denominator`` computed from period totals."""

    return safe_divide(numerator, denominator) * 100


def trend_pct(current: float, previous: float) -> int:
    """Whole-percent change from ``previous`` to ``current``; 0 when there is no baseline."""

    change = safe_divide(current - previous, previous)
    return int(round_half_up(change * 100))


__all__ = ["safe_divide", "round_half_up", "close_rate", "trend_pct"]
