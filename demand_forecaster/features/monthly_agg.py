"""
Monthly aggregation of historical transactions.

Purpose
-------
Collapses raw ``TransactionRecord`` rows into one ``PeriodAggregate`` per UTC
calendar month.  That monthly grain is the input to the trend estimator, the
seasonality extractor and the historical average used by the forecaster.

Key design choices
------------------
1.  **UTC month keys** — the period key is taken after converting the
    timestamp to UTC, so the same transaction always lands in the same month
    regardless of the offset it was recorded with.

2.  **No date spine** — months without transactions are simply absent.  The
    seasonality extractor counts *distinct* periods, so a gap lowers the data
    quality tier instead of inserting zero-demand months.

3.  **Division guard** — ``average_price = revenue / max(quantity, 1)`` keeps
    zero-quantity months (e.g. cancelled orders) finite and non-negative.

Input → Output
--------------
Input:  ``list[TransactionRecord]`` in any order
Output: ``dict[period_key, PeriodAggregate]``; key order is not meaningful,
        use ``sorted_quantities()`` for time-series work.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from demand_forecaster.models.forecast import DataQuality, PeriodAggregate
from demand_forecaster.models.history import TransactionRecord
from demand_forecaster.utils.time_utils import period_key

HIGH_QUALITY_MIN_PERIODS   = 12
MEDIUM_QUALITY_MIN_PERIODS = 6


@dataclass
class _MonthAccumulator:
    quantity: float = 0.0
    revenue: float = 0.0
    count: int = 0


def aggregate_monthly(
    records: Iterable[TransactionRecord],
) -> dict[str, PeriodAggregate]:
    """Group transactions by calendar month.

    Args:
        records: Transactions for one commodity, any order.

    Returns:
        Mapping of ``"YYYY-MM"`` → ``PeriodAggregate``. Empty input gives an
        empty mapping.
    """
    buckets: dict[str, _MonthAccumulator] = {}
    for rec in records:
        acc = buckets.setdefault(period_key(rec.timestamp), _MonthAccumulator())
        acc.quantity += rec.quantity
        acc.revenue  += rec.quantity * rec.unit_price
        acc.count    += 1

    return {
        key: PeriodAggregate(
            period_key=key,
            total_quantity=acc.quantity,
            total_revenue=acc.revenue,
            record_count=acc.count,
            average_price=acc.revenue / max(acc.quantity, 1.0),
        )
        for key, acc in buckets.items()
    }


def sorted_quantities(aggregates: dict[str, PeriodAggregate]) -> list[float]:
    """Monthly total quantities in chronological order."""
    return [aggregates[k].total_quantity for k in sorted(aggregates)]


def historical_average(aggregates: dict[str, PeriodAggregate]) -> float:
    """Mean monthly quantity; 0.0 when there is no history."""
    quantities = sorted_quantities(aggregates)
    return sum(quantities) / max(len(quantities), 1)


def data_quality_tier(n_periods: int) -> DataQuality:
    """Coarse label for how much monthly history backs a forecast.

    ``"high"`` at 12+ months, ``"medium"`` at 6+, otherwise ``"low"``.
    """
    if n_periods >= HIGH_QUALITY_MIN_PERIODS:
        return "high"
    if n_periods >= MEDIUM_QUALITY_MIN_PERIODS:
        return "medium"
    return "low"
