"""
Market price trend and macro sentiment adjustments.

Market factor
-------------
Prices are sorted oldest → newest and non-positive prices dropped.  The trend
compares the mean of the latest ``PRICE_WINDOW`` points against the earliest
``PRICE_WINDOW``::

    trend  = (recent_mean - earliest_mean) / max(earliest_mean, 1)
    factor = 1 + trend * market_factor * 0.1

With fewer than two usable prices the trend is 0 and the factor 1.0.  When
the series is shorter than two windows the windows overlap; that only damps
the trend.

Economic impact
---------------
An additive score: +0.1 per positive sentiment, -0.1 per negative, +0.05 per
increasing growth outlook, -0.05 per decreasing.  The sum is deliberately not
clamped; the forecaster consumes it as ``(1 + impact)`` and the number of
signals is already capped by the query limit.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from demand_forecaster.models.history import MarketPricePoint, SentimentSignal
from demand_forecaster.utils.time_utils import ensure_utc

PRICE_WINDOW       = 10
MARKET_SCALE       = 0.1

_SENTIMENT_WEIGHTS: dict[str, float] = {"positive": 0.1, "negative": -0.1}
_GROWTH_WEIGHTS:    dict[str, float] = {"increasing": 0.05, "decreasing": -0.05}


@dataclass(frozen=True)
class MarketAdjustment:
    """Market and macro inputs to the forecaster.

    Attributes:
        market_trend:    Normalised price trend (raw, used by risk rules).
        market_factor:   Multiplier ``1 + trend * market_factor * 0.1``.
        economic_impact: Unclamped sentiment/growth score.
        n_prices:        Usable price points behind ``market_trend``.
        n_signals:       Sentiment signals behind ``economic_impact``.
    """

    market_trend:    float
    market_factor:   float
    economic_impact: float
    n_prices:        int
    n_signals:       int


def market_price_trend(prices: Sequence[MarketPricePoint]) -> float:
    """Normalised difference between recent and earliest mean price.

    Returns 0.0 with fewer than two positive prices.
    """
    ordered = sorted(prices, key=lambda p: ensure_utc(p.timestamp))
    values = [p.price for p in ordered if p.price > 0]
    if len(values) < 2:
        return 0.0

    earliest = values[:PRICE_WINDOW]
    recent = values[-PRICE_WINDOW:]
    earliest_avg = sum(earliest) / len(earliest)
    recent_avg = sum(recent) / len(recent)
    return (recent_avg - earliest_avg) / max(earliest_avg, 1.0)


def economic_impact(signals: Sequence[SentimentSignal]) -> float:
    """Sum of sentiment and growth-outlook weights (unclamped)."""
    score = 0.0
    for sig in signals:
        score += _SENTIMENT_WEIGHTS.get(sig.sentiment, 0.0)
        score += _GROWTH_WEIGHTS.get(sig.growth_forecast, 0.0)
    return score


def compute_market_adjustment(
    prices: Sequence[MarketPricePoint],
    signals: Sequence[SentimentSignal],
    market_factor_weight: float = 1.0,
) -> MarketAdjustment:
    """Fold price and sentiment signals into forecaster multipliers.

    Args:
        prices:               External price observations, any order.
        signals:              Sentiment / growth readings.
        market_factor_weight: ``ModelParameters.market_factor``.

    Returns:
        ``MarketAdjustment``.
    """
    trend = market_price_trend(prices)
    return MarketAdjustment(
        market_trend=trend,
        market_factor=1.0 + trend * market_factor_weight * MARKET_SCALE,
        economic_impact=economic_impact(signals),
        n_prices=sum(1 for p in prices if p.price > 0),
        n_signals=len(signals),
    )
