"""
Forecast output models.

``PeriodAggregate`` is one calendar month of summarised transactions. It is
recomputed on every request and never cached.

``ForecastPoint`` is a single monthly point forecast with its confidence and
the factor multipliers that produced it. ``ForecastResult`` is the complete
response of ``ForecastEngine.forecast()``.

All three are frozen; a forecast is never edited after it is produced.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from demand_forecaster.models.learning import ModelParameters

DataQuality = Literal["high", "medium", "low"]
ConfidenceLevel = Literal["high", "medium", "low"]
TrendLabel = Literal["increasing", "decreasing"]


class PeriodAggregate(BaseModel):
    """Summary statistics for one calendar month.

    Attributes:
        period_key: ``"YYYY-MM"`` (UTC).
        total_quantity: Sum of transaction quantities.
        total_revenue: Sum of ``quantity * unit_price``.
        record_count: Number of transactions in the month.
        average_price: ``total_revenue / max(total_quantity, 1)``.
    """

    model_config = ConfigDict(frozen=True)

    period_key: str
    total_quantity: float
    total_revenue: float
    record_count: int
    average_price: float

    @field_validator("average_price")
    @classmethod
    def validate_average_price(cls, v: float) -> float:
        if v < 0:
            raise ValueError("average_price must be non-negative.")
        return v


class FactorBreakdown(BaseModel):
    """Multipliers applied to the historical average for one forecast point."""

    model_config = ConfigDict(frozen=True)

    trend: float
    seasonal: float
    market: float
    economic: float


class ForecastPoint(BaseModel):
    """Point forecast for one future month.

    Attributes:
        period_key: Target month, ``"YYYY-MM"``.
        months_ahead: Offset from the forecast date (1 = next month).
        predicted_quantity: Non-negative quantity estimate.
        confidence: Decayed confidence in [0, 1].
        trend_label: ``"increasing"`` when the trend factor exceeds 1.
        factor_breakdown: Factor multipliers behind the estimate.
    """

    model_config = ConfigDict(frozen=True)

    period_key: str
    months_ahead: int
    predicted_quantity: float
    confidence: float
    trend_label: TrendLabel
    factor_breakdown: FactorBreakdown

    @model_validator(mode="after")
    def validate_ranges(self) -> "ForecastPoint":
        if self.predicted_quantity < 0:
            raise ValueError("predicted_quantity must be non-negative.")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}.")
        if self.months_ahead < 1:
            raise ValueError("months_ahead must be >= 1.")
        return self


class ForecastResult(BaseModel):
    """Full response of one forecast request.

    Attributes:
        commodity_id: Commodity forecast.
        prediction_period: Human label, e.g. ``"3 months"``.
        monthly_forecast: One ``ForecastPoint`` per month, nearest first.
        factors: Factor tags in play for this forecast (stored with each
            prediction record and used for factor attribution in learning).
        recommendations: Action tags.
        historical_average: Mean monthly quantity over the lookback window.
        confidence_level: Coarse label for ``confidence_score``.
        confidence_score: Parameter confidence scaled by historical accuracy.
        risk_factors: Risk tags.
        data_quality: ``"high"`` / ``"medium"`` / ``"low"`` by months of history.
        model_improvements: Adjustment notes from the learning metrics.
        accuracy_history: Overall historical accuracy (0 when none resolved).
        parameters_used: Model parameters the forecast ran with.
        data_points_analyzed: Transactions plus market price points read.
        model_version: Engine model version tag.
        prediction_ids: Outcome-store ids, one per point (empty if not persisted).
        generated_at: UTC time of the request.
    """

    model_config = ConfigDict(frozen=True)

    commodity_id: str
    prediction_period: str
    monthly_forecast: list[ForecastPoint]
    factors: list[str]
    recommendations: list[str]
    historical_average: float
    confidence_level: ConfidenceLevel
    confidence_score: float
    risk_factors: list[str]
    data_quality: DataQuality
    model_improvements: list[str] = []
    accuracy_history: float = 0.0
    parameters_used: ModelParameters
    data_points_analyzed: int = 0
    model_version: str
    prediction_ids: list[str] = []
    generated_at: datetime
