"""Tests for recommendation tag generation."""

from __future__ import annotations

from demand_forecaster.recommendations.actions import DEFAULT_ACTION, generate_recommendations
from demand_forecaster.recommendations.risk import (
    HIGH_DEMAND_VARIABILITY,
    MARKET_PRICE_INSTABILITY,
    NORMAL_MARKET_CONDITIONS,
)

_CALM = {
    "trend_factor": 1.0,
    "risk_factors": [NORMAL_MARKET_CONDITIONS],
    "seasonal_factor": 1.0,
    "data_quality": "high",
    "confidence": 0.8,
}


def _recs(**overrides) -> list[str]:
    return generate_recommendations(**{**_CALM, **overrides})


class TestGenerateRecommendations:
    def test_default_when_nothing_fires(self):
        assert _recs() == [DEFAULT_ACTION]

    def test_growth(self):
        assert _recs(trend_factor=1.2) == [
            "increase_inventory_capacity",
            "secure_additional_suppliers",
        ]

    def test_decline(self):
        assert _recs(trend_factor=0.8) == ["optimize_inventory_levels", "explore_new_markets"]

    def test_trend_thresholds_are_strict(self):
        assert _recs(trend_factor=1.1) == [DEFAULT_ACTION]
        assert _recs(trend_factor=0.9) == [DEFAULT_ACTION]

    def test_demand_variability(self):
        assert _recs(risk_factors=[HIGH_DEMAND_VARIABILITY]) == ["implement_flexible_contracts"]

    def test_price_instability(self):
        assert _recs(risk_factors=[MARKET_PRICE_INSTABILITY]) == ["consider_price_hedging"]

    def test_seasonal_peak(self):
        assert _recs(seasonal_factor=1.15) == ["prepare_for_seasonal_peak"]

    def test_low_quality(self):
        assert _recs(data_quality="low") == ["improve_data_collection"]

    def test_medium_quality_is_fine(self):
        assert _recs(data_quality="medium") == [DEFAULT_ACTION]

    def test_low_confidence(self):
        assert _recs(confidence=0.65) == ["monitor_predictions_closely"]

    def test_combined_order_and_no_default(self):
        recs = _recs(
            trend_factor=1.3,
            risk_factors=[HIGH_DEMAND_VARIABILITY, HIGH_DEMAND_VARIABILITY],
            seasonal_factor=1.2,
            data_quality="low",
            confidence=0.5,
        )
        assert recs == [
            "increase_inventory_capacity",
            "secure_additional_suppliers",
            "implement_flexible_contracts",
            "prepare_for_seasonal_peak",
            "improve_data_collection",
            "monitor_predictions_closely",
        ]
        assert DEFAULT_ACTION not in recs
        assert len(recs) == len(set(recs))
