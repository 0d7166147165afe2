"""
Prediction accuracy and factor attribution.

Accuracy
--------
    accuracy = 100 - min(100, |predicted - actual| / max(actual, 1) * 100)

Scored against the actual so that over- and under-forecasting by the same
number of units cost the same.  ``max(actual, 1)`` keeps a zero actual
finite: predicted 0 / actual 0 is a perfect 100.

Timeframe buckets
-----------------
Resolved records are grouped by how far ahead they were made:
``1_month`` (1), ``3_months`` (2-3), ``6_months`` (4-6), ``12_months`` (7+).
Only buckets with at least one record appear in the output.

Factor attribution
------------------
Records are ranked by accuracy (ties broken by id).  The top and bottom
quartiles (``max(1, n // 4)`` records each, at least 4 records overall) are
compared: a factor tag seen in at least ``MIN_FACTOR_SAMPLES`` records that is
more frequent among the best outcomes is *improving*; more frequent among
the worst, *declining*.  Equal frequency attributes nothing.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from demand_forecaster.models.learning import LearningMetrics, PredictionRecord

MIN_FACTOR_SAMPLES    = 3
MIN_QUARTILE_RECORDS  = 4
INSUFFICIENT_DATA_TAG = "insufficient_data_for_learning"

_TIMEFRAME_BUCKETS: tuple[tuple[int, str], ...] = (
    (1, "1_month"),
    (3, "3_months"),
    (6, "6_months"),
)
_LONG_TIMEFRAME = "12_months"


def compute_accuracy(predicted: float, actual: float) -> float:
    """Accuracy percentage in [0, 100] for one prediction."""
    error_pct = abs(predicted - actual) / max(actual, 1.0) * 100.0
    return 100.0 - min(100.0, error_pct)


def timeframe_bucket(months_ahead: int) -> str:
    """Bucket label for a months-ahead offset."""
    for upper, label in _TIMEFRAME_BUCKETS:
        if months_ahead <= upper:
            return label
    return _LONG_TIMEFRAME


def accuracy_by_timeframe(records: Sequence[PredictionRecord]) -> dict[str, float]:
    """Mean accuracy per timeframe bucket, in bucket order."""
    grouped: dict[str, list[float]] = {}
    for rec in records:
        grouped.setdefault(timeframe_bucket(rec.months_ahead), []).append(
            rec.accuracy_percentage or 0.0
        )
    order = [label for _, label in _TIMEFRAME_BUCKETS] + [_LONG_TIMEFRAME]
    return {
        label: sum(grouped[label]) / len(grouped[label])
        for label in order
        if label in grouped
    }


def attribute_factors(
    records: Sequence[PredictionRecord],
) -> tuple[list[str], list[str]]:
    """Split factor tags into (improving, declining) by quartile frequency.

    Returns two sorted lists; both empty with fewer than 4 records.
    """
    if len(records) < MIN_QUARTILE_RECORDS:
        return [], []

    ranked = sorted(records, key=lambda r: (-(r.accuracy_percentage or 0.0), r.id or ""))
    k = max(1, len(ranked) // 4)
    top, bottom = ranked[:k], ranked[-k:]

    overall = Counter(tag for r in ranked for tag in set(r.factors_used))
    top_counts = Counter(tag for r in top for tag in set(r.factors_used))
    bottom_counts = Counter(tag for r in bottom for tag in set(r.factors_used))

    improving: list[str] = []
    declining: list[str] = []
    for tag, seen in sorted(overall.items()):
        if seen < MIN_FACTOR_SAMPLES:
            continue
        if top_counts[tag] > bottom_counts[tag]:
            improving.append(tag)
        elif bottom_counts[tag] > top_counts[tag]:
            declining.append(tag)
    return improving, declining


def compute_learning_metrics(
    commodity_id: str,
    records: Sequence[PredictionRecord],
) -> LearningMetrics:
    """Summarise resolved records for one commodity.

    Unresolved records in ``records`` are ignored.

    Args:
        commodity_id: Commodity the records belong to.
        records:      Prediction records (typically from ``query_resolved``).

    Returns:
        ``LearningMetrics``. With nothing resolved, overall accuracy is 0 and
        the only adjustment note is ``insufficient_data_for_learning``.
    """
    resolved = [r for r in records if r.is_resolved]
    if not resolved:
        return LearningMetrics(recommendation_adjustments=[INSUFFICIENT_DATA_TAG])

    overall = sum(r.accuracy_percentage or 0.0 for r in resolved) / len(resolved)
    improving, declining = attribute_factors(resolved)

    adjustments: list[str] = []
    if improving:
        adjustments.append(f"increase_weight_for_factors: {', '.join(improving)}")
    if declining:
        adjustments.append(f"decrease_weight_for_factors: {', '.join(declining)}")

    return LearningMetrics(
        overall_accuracy=overall,
        accuracy_by_commodity={commodity_id: overall},
        accuracy_by_timeframe=accuracy_by_timeframe(resolved),
        improving_factors=improving,
        declining_factors=declining,
        recommendation_adjustments=adjustments,
        sample_size=len(resolved),
    )
