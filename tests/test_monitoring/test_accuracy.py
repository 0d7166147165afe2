"""Tests for accuracy scoring, timeframe buckets and factor attribution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from demand_forecaster.models.learning import PredictionRecord
from demand_forecaster.monitoring.accuracy import (
    INSUFFICIENT_DATA_TAG,
    accuracy_by_timeframe,
    attribute_factors,
    compute_accuracy,
    compute_learning_metrics,
    timeframe_bucket,
)

_T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _resolved(
    idx: int,
    accuracy: float,
    factors: list[str],
    months_ahead: int = 1,
) -> PredictionRecord:
    return PredictionRecord(
        id=f"p{idx:03d}",
        commodity_id="coal",
        predicted_value=100.0,
        period_label="2026-02",
        months_ahead=months_ahead,
        factors_used=factors,
        confidence=0.65,
        created_at=_T0,
        actual_value=100.0,
        accuracy_percentage=accuracy,
        outcome_date=_T0 + timedelta(days=idx),
    )


class TestComputeAccuracy:
    @pytest.mark.parametrize("predicted, actual, expected", [
        (100.0, 100.0, 100.0),
        (150.0, 100.0, 50.0),
        (0.0,   0.0,   100.0),
        (50.0,  100.0, 50.0),
        (300.0, 100.0, 0.0),
        (0.5,   0.0,   50.0),
    ])
    def test_examples(self, predicted, actual, expected):
        assert compute_accuracy(predicted, actual) == pytest.approx(expected)

    def test_bounded(self):
        for predicted in (0.0, 1.0, 1e9):
            assert 0.0 <= compute_accuracy(predicted, 10.0) <= 100.0


class TestTimeframes:
    @pytest.mark.parametrize("months_ahead, bucket", [
        (1, "1_month"),
        (2, "3_months"),
        (3, "3_months"),
        (4, "6_months"),
        (6, "6_months"),
        (7, "12_months"),
        (24, "12_months"),
    ])
    def test_bucket(self, months_ahead, bucket):
        assert timeframe_bucket(months_ahead) == bucket

    def test_only_populated_buckets(self):
        records = [
            _resolved(1, 90.0, [], months_ahead=1),
            _resolved(2, 70.0, [], months_ahead=1),
            _resolved(3, 60.0, [], months_ahead=8),
        ]
        assert accuracy_by_timeframe(records) == {
            "1_month": pytest.approx(80.0),
            "12_months": pytest.approx(60.0),
        }


class TestAttributeFactors:
    def test_fewer_than_four_records(self):
        records = [_resolved(i, 90.0, ["upward_trend_detected"]) for i in range(3)]
        assert attribute_factors(records) == ([], [])

    def test_quartile_split(self):
        good = [
            _resolved(i, 95.0 - i, ["historical_sales_pattern", "upward_trend_detected"])
            for i in range(4)
        ]
        bad = [
            _resolved(10 + i, 40.0 - i, ["historical_sales_pattern", "seasonal_high_period"])
            for i in range(4)
        ]
        improving, declining = attribute_factors(good + bad)

        assert improving == ["upward_trend_detected"]
        assert declining == ["seasonal_high_period"]

    def test_rare_tags_ignored(self):
        records = [_resolved(i, 90.0 - 10 * i, ["historical_sales_pattern"]) for i in range(8)]
        records[0] = _resolved(0, 99.0, ["historical_sales_pattern", "market_price_rising"])
        improving, declining = attribute_factors(records)
        assert "market_price_rising" not in improving
        assert improving == [] and declining == []

    def test_deterministic_under_reordering(self):
        records = [
            _resolved(i, 50.0 + (i % 3) * 10, ["upward_trend_detected"] if i % 2 else ["seasonal_low_period"])
            for i in range(12)
        ]
        assert attribute_factors(records) == attribute_factors(list(reversed(records)))


class TestComputeLearningMetrics:
    def test_no_resolved_records(self):
        metrics = compute_learning_metrics("coal", [])
        assert metrics.overall_accuracy == 0.0
        assert metrics.recommendation_adjustments == [INSUFFICIENT_DATA_TAG]
        assert metrics.sample_size == 0

    def test_unresolved_records_ignored(self):
        pending = PredictionRecord(
            id="x", commodity_id="coal", predicted_value=1.0, period_label="2026-02",
            confidence=0.6, created_at=_T0,
        )
        metrics = compute_learning_metrics("coal", [pending])
        assert metrics.recommendation_adjustments == [INSUFFICIENT_DATA_TAG]

    def test_summary(self):
        good = [_resolved(i, 90.0, ["upward_trend_detected"]) for i in range(4)]
        bad = [_resolved(10 + i, 30.0, ["market_price_falling"], months_ahead=3) for i in range(4)]
        metrics = compute_learning_metrics("coal", good + bad)

        assert metrics.overall_accuracy == pytest.approx(60.0)
        assert metrics.accuracy_by_commodity == {"coal": pytest.approx(60.0)}
        assert metrics.accuracy_by_timeframe == {
            "1_month": pytest.approx(90.0),
            "3_months": pytest.approx(30.0),
        }
        assert metrics.improving_factors == ["upward_trend_detected"]
        assert metrics.declining_factors == ["market_price_falling"]
        assert metrics.recommendation_adjustments == [
            "increase_weight_for_factors: upward_trend_detected",
            "decrease_weight_for_factors: market_price_falling",
        ]
        assert metrics.sample_size == 8
