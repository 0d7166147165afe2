"""Tests for rule-based risk tagging."""

from __future__ import annotations

import pytest

from demand_forecaster.recommendations.risk import (
    HIGH_DEMAND_VARIABILITY,
    HIGH_TREND_VOLATILITY,
    MARKET_PRICE_INSTABILITY,
    NEGATIVE_ECONOMIC_INDICATORS,
    NORMAL_MARKET_CONDITIONS,
    assess_risks,
)


class TestAssessRisks:
    def test_calm_signals_are_normal(self):
        assert assess_risks(0.0, 0.1, 0.0, 0.0) == [NORMAL_MARKET_CONDITIONS]

    @pytest.mark.parametrize("kwargs, expected", [
        ({"trend_coefficient": 0.15},  HIGH_TREND_VOLATILITY),
        ({"trend_coefficient": -0.15}, HIGH_TREND_VOLATILITY),
        ({"volatility": 0.31},         HIGH_DEMAND_VARIABILITY),
        ({"market_trend": 0.25},       MARKET_PRICE_INSTABILITY),
        ({"market_trend": -0.25},      MARKET_PRICE_INSTABILITY),
        ({"economic_impact": -0.2},    NEGATIVE_ECONOMIC_INDICATORS),
    ])
    def test_single_rule(self, kwargs, expected):
        signals = {"trend_coefficient": 0.0, "volatility": 0.1,
                   "market_trend": 0.0, "economic_impact": 0.0}
        signals.update(kwargs)
        assert assess_risks(**signals) == [expected]

    def test_thresholds_are_strict(self):
        assert assess_risks(0.1, 0.3, 0.2, -0.1) == [NORMAL_MARKET_CONDITIONS]

    def test_rules_accumulate_in_order(self):
        assert assess_risks(0.5, 0.5, 0.5, -0.5) == [
            HIGH_TREND_VOLATILITY,
            HIGH_DEMAND_VARIABILITY,
            MARKET_PRICE_INSTABILITY,
            NEGATIVE_ECONOMIC_INDICATORS,
        ]

    def test_normal_never_combined(self):
        risks = assess_risks(0.5, 0.0, 0.0, 0.0)
        assert NORMAL_MARKET_CONDITIONS not in risks

    def test_positive_economy_is_not_a_risk(self):
        assert assess_risks(0.0, 0.0, 0.0, 2.5) == [NORMAL_MARKET_CONDITIONS]
