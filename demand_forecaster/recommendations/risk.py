"""
Rule-based risk tagging.

Rules (independent; a forecast may carry several tags)
------------------------------------------------------
    high_trend_volatility         |trend coefficient| > 0.1
    high_demand_variability       seasonal volatility > 0.3
    market_price_instability      |market trend| > 0.2
    negative_economic_indicators  economic impact < -0.1

If no rule fires the single tag ``normal_market_conditions`` is returned.
It is never combined with another tag.
"""

from __future__ import annotations

HIGH_TREND_VOLATILITY        = "high_trend_volatility"
HIGH_DEMAND_VARIABILITY      = "high_demand_variability"
MARKET_PRICE_INSTABILITY     = "market_price_instability"
NEGATIVE_ECONOMIC_INDICATORS = "negative_economic_indicators"
NORMAL_MARKET_CONDITIONS     = "normal_market_conditions"

TREND_THRESHOLD      = 0.1
VOLATILITY_THRESHOLD = 0.3
MARKET_THRESHOLD     = 0.2
ECONOMIC_THRESHOLD   = -0.1


def assess_risks(
    trend_coefficient: float,
    volatility: float,
    market_trend: float,
    economic_impact: float,
) -> list[str]:
    """Classify a set of forecast signals into risk tags.

    Args:
        trend_coefficient: Normalised trend slope (not the clamped factor).
        volatility:        Seasonal coefficient of variation.
        market_trend:      Normalised market price trend.
        economic_impact:   Sentiment/growth score.

    Returns:
        Risk tags in rule order, or ``["normal_market_conditions"]``.
    """
    risks: list[str] = []
    if abs(trend_coefficient) > TREND_THRESHOLD:
        risks.append(HIGH_TREND_VOLATILITY)
    if volatility > VOLATILITY_THRESHOLD:
        risks.append(HIGH_DEMAND_VARIABILITY)
    if abs(market_trend) > MARKET_THRESHOLD:
        risks.append(MARKET_PRICE_INSTABILITY)
    if economic_impact < ECONOMIC_THRESHOLD:
        risks.append(NEGATIVE_ECONOMIC_INDICATORS)
    return risks or [NORMAL_MARKET_CONDITIONS]
