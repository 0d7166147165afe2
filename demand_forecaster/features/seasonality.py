"""
Calendar-month seasonality from monthly aggregates.

Method
------
1.  Require at least ``MIN_SEASONAL_PERIODS`` (12) distinct months.  With
    fewer, every month's factor is exactly 1.0 and volatility is 0.1: a
    half-year of data cannot tell a seasonal peak from noise.

2.  Remove the linear trend around the series midpoint::

        adjusted_i = q_i - slope * (i - (n - 1) / 2)

    The adjustment sums to zero, so the overall mean is unchanged and a flat
    series gives exactly the plain "month average / overall average" ratio.
    Without it a strongly rising series makes every early-calendar month look
    weak, hiding a recurring December peak behind a year of growth.

3.  Group the adjusted quantities by calendar month (1-12) across all years.
    ``factor[m] = mean(adjusted for month m) / max(overall mean, 1)``.
    A month never observed keeps the neutral factor 1.0.

4.  ``volatility`` = population std of the raw monthly quantities divided by
    ``max(overall mean, 1)`` (coefficient of variation).

The forecaster asks for the factor of each point's *target* month and scales
the deviation by ``seasonal_weight``: ``1 + (factor - 1) * weight``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from demand_forecaster.features.monthly_agg import sorted_quantities
from demand_forecaster.features.trend import ols_slope
from demand_forecaster.models.forecast import PeriodAggregate
from demand_forecaster.utils.time_utils import parse_period_key

MIN_SEASONAL_PERIODS = 12
NEUTRAL_FACTOR       = 1.0
NEUTRAL_VOLATILITY   = 0.1


@dataclass(frozen=True)
class SeasonalPattern:
    """Seasonal factors by calendar month plus a volatility measure.

    Attributes:
        monthly_factors: ``{month_number: factor}`` for months seen in history.
                         Empty when the pattern is neutral.
        volatility:      Coefficient of variation of monthly quantities.
        is_neutral:      True when history was too short to estimate anything.
    """

    monthly_factors: dict[int, float] = field(default_factory=dict)
    volatility:      float = NEUTRAL_VOLATILITY
    is_neutral:      bool  = True

    def factor_for(self, month: int, weight: float = 1.0) -> float:
        """Weighted seasonal multiplier for calendar ``month`` (1-12)."""
        raw = self.monthly_factors.get(month, NEUTRAL_FACTOR)
        return 1.0 + (raw - 1.0) * weight


NEUTRAL_PATTERN = SeasonalPattern()


def extract_seasonality(aggregates: dict[str, PeriodAggregate]) -> SeasonalPattern:
    """Estimate per-calendar-month seasonal factors.

    Args:
        aggregates: Output of ``aggregate_monthly()``.

    Returns:
        ``SeasonalPattern``; ``NEUTRAL_PATTERN`` with fewer than 12 periods.
    """
    if len(aggregates) < MIN_SEASONAL_PERIODS:
        return NEUTRAL_PATTERN

    keys = sorted(aggregates)
    quantities = sorted_quantities(aggregates)
    n = len(quantities)
    overall_avg = sum(quantities) / n
    denom = max(overall_avg, 1.0)

    slope = ols_slope(quantities)
    center = (n - 1) / 2

    by_month: dict[int, list[float]] = {}
    for i, (key, qty) in enumerate(zip(keys, quantities)):
        _, month = parse_period_key(key)
        by_month.setdefault(month, []).append(qty - slope * (i - center))

    factors = {
        month: max(sum(vals) / len(vals), 0.0) / denom
        for month, vals in sorted(by_month.items())
    }

    variance = sum((q - overall_avg) ** 2 for q in quantities) / n
    volatility = math.sqrt(variance) / denom

    return SeasonalPattern(monthly_factors=factors, volatility=volatility, is_neutral=False)
