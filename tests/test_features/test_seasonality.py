"""Tests for calendar-month seasonality extraction."""

from __future__ import annotations

import pytest

from demand_forecaster.features.monthly_agg import aggregate_monthly
from demand_forecaster.features.seasonality import (
    NEUTRAL_PATTERN,
    SeasonalPattern,
    extract_seasonality,
)


class TestNeutralFallback:
    def test_six_months_is_exactly_neutral(self, make_monthly_transactions):
        records = make_monthly_transactions("coal", [100, 500, 20, 300, 80, 900], 2024, 1)
        pattern = extract_seasonality(aggregate_monthly(records))

        assert pattern.is_neutral
        assert pattern.volatility == 0.1
        for month in range(1, 13):
            assert pattern.factor_for(month) == 1.0

    def test_eleven_months_is_neutral(self, make_monthly_transactions):
        records = make_monthly_transactions("coal", [100.0] * 11, 2024, 1)
        assert extract_seasonality(aggregate_monthly(records)) is NEUTRAL_PATTERN

    def test_empty_history_is_neutral(self):
        assert extract_seasonality({}) is NEUTRAL_PATTERN


class TestComputedPattern:
    def test_flat_series_has_unit_factors(self, make_monthly_transactions):
        records = make_monthly_transactions("coal", [100.0] * 12, 2024, 1)
        pattern = extract_seasonality(aggregate_monthly(records))

        assert not pattern.is_neutral
        for month in range(1, 13):
            assert pattern.factor_for(month) == pytest.approx(1.0)
        assert pattern.volatility == pytest.approx(0.0)

    def test_december_peak_detected(self, make_monthly_transactions):
        quantities = [100.0] * 11 + [200.0]
        records = make_monthly_transactions("coal", quantities, 2024, 1)
        pattern = extract_seasonality(aggregate_monthly(records))

        december = pattern.factor_for(12)
        assert december > 1.5
        assert december == max(pattern.monthly_factors.values())

    def test_volatility_is_coefficient_of_variation(self, make_monthly_transactions):
        quantities = [100.0] * 11 + [200.0]
        records = make_monthly_transactions("coal", quantities, 2024, 1)
        pattern = extract_seasonality(aggregate_monthly(records))

        # population std 27.639 / mean 108.333
        assert pattern.volatility == pytest.approx(0.25513, abs=1e-4)

    def test_rising_series_keeps_december_above_one(self, rising_december_history):
        pattern = extract_seasonality(aggregate_monthly(rising_december_history))
        assert pattern.factor_for(12) > 1.0

    def test_factors_mean_preserving_for_full_years(self, make_monthly_transactions):
        quantities = [float(50 + 10 * i) for i in range(24)]
        records = make_monthly_transactions("coal", quantities, 2023, 1)
        pattern = extract_seasonality(aggregate_monthly(records))

        factors = list(pattern.monthly_factors.values())
        assert len(factors) == 12
        assert sum(factors) / 12 == pytest.approx(1.0)


class TestFactorFor:
    def test_weight_scales_deviation(self):
        pattern = SeasonalPattern(monthly_factors={12: 1.4}, volatility=0.2, is_neutral=False)
        assert pattern.factor_for(12, 0.5) == pytest.approx(1.2)
        assert pattern.factor_for(12, 1.5) == pytest.approx(1.6)

    def test_unseen_month_is_neutral(self):
        pattern = SeasonalPattern(monthly_factors={12: 1.4}, volatility=0.2, is_neutral=False)
        assert pattern.factor_for(6) == 1.0
