"""
Linear trend estimation over monthly quantities.

The slope is an ordinary least-squares fit against the index ``0..n-1``.
Dividing by the series mean makes it scale-free: a slope of 10 units/month
means something very different for a 100-unit and a 10,000-unit commodity.

The trend *factor* handed to the forecaster is clamped to [0.5, 2.0] because
it is compounded per forecast month (``trend ** i``); an unclamped factor of
3.0 would make month 6 729x the average.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

MIN_TREND_FACTOR = 0.5
MAX_TREND_FACTOR = 2.0


@dataclass(frozen=True)
class TrendEstimate:
    """Result of fitting a trend to a quantity series.

    Attributes:
        raw_slope:    OLS slope in units per month.
        coefficient:  ``raw_slope / max(mean, 1)``; dimensionless.
        factor:       ``clamp(1 + coefficient * sensitivity, 0.5, 2.0)``.
    """

    raw_slope:   float
    coefficient: float
    factor:      float


def ols_slope(values: Sequence[float]) -> float:
    """Least-squares slope of ``values`` against their index.

    Returns 0.0 for fewer than two points.
    """
    n = len(values)
    if n < 2:
        return 0.0
    sum_x  = n * (n - 1) / 2
    sum_xx = (n - 1) * n * (2 * n - 1) / 6
    sum_y  = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    denom = n * sum_xx - sum_x * sum_x
    return (n * sum_xy - sum_x * sum_y) / denom


def normalized_slope(values: Sequence[float]) -> float:
    """OLS slope divided by ``max(mean, 1)``; 0.0 for fewer than two points."""
    if len(values) < 2:
        return 0.0
    mean = sum(values) / len(values)
    return ols_slope(values) / max(mean, 1.0)


def trend_factor(coefficient: float, sensitivity: float) -> float:
    """Convert a normalised slope into a bounded multiplier."""
    return _clamp(1.0 + coefficient * sensitivity, MIN_TREND_FACTOR, MAX_TREND_FACTOR)


def estimate_trend(values: Sequence[float], sensitivity: float = 1.0) -> TrendEstimate:
    """Fit the trend of a chronological quantity series.

    Args:
        values:      Monthly quantities, oldest first.
        sensitivity: ``ModelParameters.trend_sensitivity``.

    Returns:
        ``TrendEstimate``. With fewer than two values the slope is 0 and the
        factor is exactly 1.0.
    """
    slope = ols_slope(values)
    coefficient = normalized_slope(values)
    return TrendEstimate(
        raw_slope=slope,
        coefficient=coefficient,
        factor=trend_factor(coefficient, sensitivity),
    )


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))
