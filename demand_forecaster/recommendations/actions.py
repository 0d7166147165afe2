"""
Action tags derived from forecast and risk state.

Mapping (evaluated in this order; tags accumulate)
--------------------------------------------------
    trend_factor > 1.1              increase_inventory_capacity,
                                    secure_additional_suppliers
    trend_factor < 0.9              optimize_inventory_levels,
                                    explore_new_markets
    high_demand_variability risk    implement_flexible_contracts
    market_price_instability risk   consider_price_hedging
    seasonal_factor > 1.1           prepare_for_seasonal_peak
    data_quality == "low"           improve_data_collection
    confidence < 0.7                monitor_predictions_closely

Nothing fired → ``["maintain_current_strategy"]``.
"""

from __future__ import annotations

from collections.abc import Sequence

from demand_forecaster.recommendations.risk import (
    HIGH_DEMAND_VARIABILITY,
    MARKET_PRICE_INSTABILITY,
)

GROWTH_THRESHOLD      = 1.1
DECLINE_THRESHOLD     = 0.9
SEASONAL_PEAK         = 1.1
LOW_CONFIDENCE        = 0.7

DEFAULT_ACTION = "maintain_current_strategy"


def generate_recommendations(
    trend_factor: float,
    risk_factors: Sequence[str],
    seasonal_factor: float,
    data_quality: str,
    confidence: float,
) -> list[str]:
    """Map forecast state to a de-duplicated, ordered list of action tags.

    Args:
        trend_factor:    Clamped trend multiplier.
        risk_factors:    Output of ``assess_risks()``.
        seasonal_factor: Seasonal multiplier of the nearest forecast month.
        data_quality:    ``"high"`` / ``"medium"`` / ``"low"``.
        confidence:      Base model confidence (``ModelParameters.confidence``).

    Returns:
        Action tags, never empty.
    """
    actions: list[str] = []

    if trend_factor > GROWTH_THRESHOLD:
        actions += ["increase_inventory_capacity", "secure_additional_suppliers"]
    elif trend_factor < DECLINE_THRESHOLD:
        actions += ["optimize_inventory_levels", "explore_new_markets"]

    if HIGH_DEMAND_VARIABILITY in risk_factors:
        actions.append("implement_flexible_contracts")
    if MARKET_PRICE_INSTABILITY in risk_factors:
        actions.append("consider_price_hedging")

    if seasonal_factor > SEASONAL_PEAK:
        actions.append("prepare_for_seasonal_peak")

    if data_quality == "low":
        actions.append("improve_data_collection")

    if confidence < LOW_CONFIDENCE:
        actions.append("monitor_predictions_closely")

    return list(dict.fromkeys(actions)) or [DEFAULT_ACTION]
