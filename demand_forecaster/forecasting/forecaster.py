"""
Multi-month point forecasts from pre-computed signals.

For each month offset ``i = 1..N``::

    base       = avg * trend**i * seasonal[target month] * market * (1 + economic)
    variance   = base * variance_tolerance
    predicted  = max(0, base + uniform(-0.5, 0.5) * variance * 2)
    confidence = max(0.4, base_confidence - 0.05 * i)

Trend compounds per month; every other factor applies flat.  The jitter
comes from an injected ``RandomSource`` so that a seeded ``random.Random``
makes runs reproducible.  With no history ``avg`` is 0 and every point is 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from demand_forecaster.features.market_signals import MarketAdjustment
from demand_forecaster.features.seasonality import SeasonalPattern
from demand_forecaster.features.trend import TrendEstimate
from demand_forecaster.models.forecast import FactorBreakdown, ForecastPoint
from demand_forecaster.models.learning import ModelParameters
from demand_forecaster.utils.time_utils import forecast_periods, parse_period_key

CONFIDENCE_FLOOR = 0.4
CONFIDENCE_DECAY = 0.05


class RandomSource(Protocol):
    """Anything with ``uniform(a, b)``; ``random.Random`` satisfies it."""

    def uniform(self, a: float, b: float) -> float: ...


@dataclass(frozen=True)
class ForecastSignals:
    """Everything the forecaster needs besides parameters.

    Attributes:
        historical_average: Mean monthly quantity (0 with no history).
        trend:              Output of ``estimate_trend()``.
        seasonality:        Output of ``extract_seasonality()``.
        market:             Output of ``compute_market_adjustment()``.
    """

    historical_average: float
    trend:              TrendEstimate
    seasonality:        SeasonalPattern
    market:             MarketAdjustment


def decayed_confidence(base_confidence: float, months_ahead: int) -> float:
    """Linear confidence decay with a floor at 0.4."""
    return round(max(CONFIDENCE_FLOOR, base_confidence - months_ahead * CONFIDENCE_DECAY), 4)


def forecast_points(
    signals: ForecastSignals,
    params: ModelParameters,
    as_of: datetime,
    horizon_months: int,
    rng: RandomSource,
) -> list[ForecastPoint]:
    """Produce one ``ForecastPoint`` per future month.

    Args:
        signals:        Pre-computed trend, seasonality and market signals.
        params:         Parameters for this commodity.
        as_of:          Forecast reference time; month 1 is the month after it.
        horizon_months: Number of months to forecast (>= 1).
        rng:            Jitter source.

    Returns:
        Points ordered nearest month first.
    """
    trend = signals.trend.factor
    market = signals.market.market_factor
    economic = signals.market.economic_impact
    trend_label = "increasing" if trend > 1 else "decreasing"

    points: list[ForecastPoint] = []
    for offset, key in enumerate(forecast_periods(as_of, horizon_months), start=1):
        _, month = parse_period_key(key)
        seasonal = signals.seasonality.factor_for(month, params.seasonal_weight)

        base = (
            signals.historical_average
            * trend ** offset
            * seasonal
            * market
            * (1 + economic)
        )
        variance = base * params.variance_tolerance
        predicted = max(0.0, base + rng.uniform(-0.5, 0.5) * variance * 2)

        points.append(
            ForecastPoint(
                period_key=key,
                months_ahead=offset,
                predicted_quantity=round(predicted, 2),
                confidence=decayed_confidence(params.confidence, offset),
                trend_label=trend_label,
                factor_breakdown=FactorBreakdown(
                    trend=trend,
                    seasonal=seasonal,
                    market=market,
                    economic=economic,
                ),
            )
        )
    return points
