"""Tests for monthly aggregation and data quality tiers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from demand_forecaster.features.monthly_agg import (
    aggregate_monthly,
    data_quality_tier,
    historical_average,
    sorted_quantities,
)
from demand_forecaster.models.history import TransactionRecord


def _txn(ts: datetime, qty: float, price: float = 10.0) -> TransactionRecord:
    return TransactionRecord(commodity_id="coal", timestamp=ts, quantity=qty, unit_price=price)


class TestAggregateMonthly:
    def test_empty_input_gives_empty_mapping(self):
        assert aggregate_monthly([]) == {}

    def test_groups_by_calendar_month(self):
        records = [
            _txn(datetime(2024, 1, 3, tzinfo=timezone.utc), 10, 2.0),
            _txn(datetime(2024, 1, 28, tzinfo=timezone.utc), 30, 4.0),
            _txn(datetime(2024, 2, 1, tzinfo=timezone.utc), 5, 1.0),
        ]
        aggs = aggregate_monthly(records)

        assert set(aggs) == {"2024-01", "2024-02"}
        jan = aggs["2024-01"]
        assert jan.total_quantity == 40
        assert jan.total_revenue == pytest.approx(140.0)
        assert jan.record_count == 2
        assert jan.average_price == pytest.approx(3.5)

    def test_month_key_uses_utc(self):
        eastern = timezone(timedelta(hours=-5))
        rec = _txn(datetime(2024, 1, 31, 23, 30, tzinfo=eastern), 1)
        assert list(aggregate_monthly([rec])) == ["2024-02"]

    def test_naive_timestamp_read_as_utc(self):
        rec = _txn(datetime(2024, 3, 31, 23, 59), 1)
        assert list(aggregate_monthly([rec])) == ["2024-03"]

    def test_zero_quantity_month_has_zero_average_price(self):
        rec = _txn(datetime(2024, 5, 1, tzinfo=timezone.utc), 0, 5.0)
        agg = aggregate_monthly([rec])["2024-05"]
        assert agg.average_price == 0.0
        assert agg.record_count == 1

    def test_input_order_irrelevant(self):
        a = _txn(datetime(2024, 1, 1, tzinfo=timezone.utc), 1)
        b = _txn(datetime(2024, 6, 1, tzinfo=timezone.utc), 2)
        assert aggregate_monthly([a, b]) == aggregate_monthly([b, a])


class TestSeriesHelpers:
    def test_sorted_quantities_chronological(self):
        records = [
            _txn(datetime(2024, 3, 1, tzinfo=timezone.utc), 3),
            _txn(datetime(2023, 12, 1, tzinfo=timezone.utc), 1),
            _txn(datetime(2024, 1, 1, tzinfo=timezone.utc), 2),
        ]
        assert sorted_quantities(aggregate_monthly(records)) == [1, 2, 3]

    def test_historical_average(self):
        records = [
            _txn(datetime(2024, 1, 1, tzinfo=timezone.utc), 100),
            _txn(datetime(2024, 2, 1, tzinfo=timezone.utc), 200),
        ]
        assert historical_average(aggregate_monthly(records)) == 150

    def test_historical_average_empty_is_zero(self):
        assert historical_average({}) == 0.0


class TestDataQualityTier:
    @pytest.mark.parametrize("n_periods, expected", [
        (0,  "low"),
        (5,  "low"),
        (6,  "medium"),
        (11, "medium"),
        (12, "high"),
        (24, "high"),
    ])
    def test_tiers(self, n_periods: int, expected: str):
        assert data_quality_tier(n_periods) == expected
