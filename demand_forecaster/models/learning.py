"""
Learning-loop models: model parameters, prediction records, and metrics.

``ModelParameters`` is the only mutable state in the system, owned by the
learning engine and stored one row per commodity. Updates are whole-object
replacements guarded by ``version``; the instance itself is frozen.

``PredictionRecord`` is written when a forecast is produced and resolved
exactly once when the actual value arrives. Records are never deleted: they
are the training signal for the learning engine.

``LearningMetrics`` is derived on demand from resolved records and not stored.
``ParameterUpdate`` records each committed learning update: the values before
and after, and the accuracy and factor attribution that drove the move.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class ModelParameters(BaseModel):
    """Per-commodity forecasting parameters.

    Attributes:
        trend_sensitivity: Scales the normalised slope in the trend factor.
        seasonal_weight: Scales the seasonal deviation from 1.0.
        market_factor: Scales the market price trend.
        confidence: Base confidence for month 1 before decay.
        variance_tolerance: Relative width of the stochastic jitter.
        version: Optimistic-concurrency counter, bumped on every write.
        outcomes_applied: Number of resolved outcomes the last learning
            update was computed from.
    """

    model_config = ConfigDict(frozen=True)

    trend_sensitivity: float = 1.0
    seasonal_weight: float = 1.0
    market_factor: float = 1.0
    confidence: float = 0.7
    variance_tolerance: float = 0.15
    version: int = 0
    outcomes_applied: int = 0

    @field_validator("confidence", "variance_tolerance")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"must be in [0.0, 1.0], got {v}.")
        return v

    @field_validator("trend_sensitivity", "seasonal_weight", "market_factor")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"must be non-negative, got {v}.")
        return v

    def tuning_values(self) -> dict[str, float]:
        """The five tunable values, without bookkeeping fields."""
        return {
            "trend_sensitivity":  self.trend_sensitivity,
            "seasonal_weight":    self.seasonal_weight,
            "market_factor":      self.market_factor,
            "confidence":         self.confidence,
            "variance_tolerance": self.variance_tolerance,
        }


class PredictionRecord(BaseModel):
    """A stored prediction and, once known, its outcome.

    Attributes:
        id: Store-assigned identifier; ``None`` before insertion.
        commodity_id: Commodity the prediction is for.
        predicted_value: Predicted quantity. Never changed after creation.
        period_label: Target period, e.g. ``"2026-12"``.
        months_ahead: How far ahead the prediction was made.
        factors_used: Factor tags active when the prediction was made.
        confidence: Confidence attached at prediction time.
        model_version: Engine model version tag.
        created_at: UTC creation time.
        actual_value: Observed value; set on resolution.
        accuracy_percentage: 0–100 accuracy; set on resolution.
        outcome_date: UTC resolution time.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    commodity_id: str
    predicted_value: float
    period_label: str
    months_ahead: int = 1
    factors_used: list[str] = []
    confidence: float
    model_version: str = "2.0-adaptive"
    created_at: datetime
    actual_value: Optional[float] = None
    accuracy_percentage: Optional[float] = None
    outcome_date: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.actual_value is not None

    @model_validator(mode="after")
    def validate_resolution_fields(self) -> "PredictionRecord":
        resolved = [
            self.actual_value is not None,
            self.accuracy_percentage is not None,
            self.outcome_date is not None,
        ]
        if any(resolved) and not all(resolved):
            raise ValueError(
                "actual_value, accuracy_percentage and outcome_date must be set together."
            )
        if self.months_ahead < 1:
            raise ValueError("months_ahead must be >= 1.")
        return self


class LearningMetrics(BaseModel):
    """Accuracy summary over a commodity's resolved predictions.

    Attributes:
        overall_accuracy: Mean accuracy percentage (0 when nothing resolved).
        accuracy_by_commodity: ``{commodity_id: overall_accuracy}``.
        accuracy_by_timeframe: Mean accuracy per months-ahead bucket.
        improving_factors: Factor tags over-represented among the most
            accurate outcomes.
        declining_factors: Factor tags over-represented among the least
            accurate outcomes.
        recommendation_adjustments: Human-readable adjustment notes.
        sample_size: Number of resolved records analysed.
    """

    model_config = ConfigDict(frozen=True)

    overall_accuracy: float = 0.0
    accuracy_by_commodity: dict[str, float] = {}
    accuracy_by_timeframe: dict[str, float] = {}
    improving_factors: list[str] = []
    declining_factors: list[str] = []
    recommendation_adjustments: list[str] = []
    sample_size: int = 0


class ParameterUpdate(BaseModel):
    """One committed learning update, kept as an audit trail.

    Written by the parameter store together with the new parameters, so a
    row exists exactly when the parameters it describes were stored.

    Attributes:
        id: Store-assigned sequence number; ``None`` before insertion.
        commodity_id: Commodity whose parameters moved.
        previous: Tuning values before the update.
        updated: Tuning values after the update.
        overall_accuracy: Mean accuracy (0–100) the update was computed from.
        improving_factors: Factor tags credited for accurate outcomes.
        declining_factors: Factor tags blamed for inaccurate outcomes.
        outcomes_applied: Resolved outcomes counted by the update.
        version: Parameter version the update produced; set by the store.
        created_at: UTC time of the update.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    commodity_id: str
    previous: dict[str, float]
    updated: dict[str, float]
    overall_accuracy: float
    improving_factors: list[str] = []
    declining_factors: list[str] = []
    outcomes_applied: int
    version: int = 0
    created_at: datetime

    def changes(self) -> dict[str, float]:
        """Signed change per tuning value, omitting values that did not move."""
        deltas = {
            name: round(value - self.previous.get(name, 0.0), 4)
            for name, value in self.updated.items()
        }
        return {name: delta for name, delta in deltas.items() if delta != 0}
