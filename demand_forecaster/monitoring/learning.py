"""
Feedback loop: prediction outcomes → per-commodity model parameters.

The learning engine owns ``ModelParameters``.  It stores predictions, attaches
actual values when they arrive, summarises accuracy, and nudges parameters.

Update policy
-------------
Each call to ``improve_forecasting`` moves every parameter by at most one
``step`` (0.05 by default):

  trend_sensitivity / seasonal_weight / market_factor
      +step for each improving factor tag mapped to the parameter,
      -step for each declining one; the net sign decides the move.

          upward_trend_detected, downward_trend_detected → trend_sensitivity
          seasonal_high_period,  seasonal_low_period     → seasonal_weight
          market_price_rising,   market_price_falling    → market_factor

  confidence
      moves one step toward ``overall_accuracy / 100`` when it is more than
      one step away.

  variance_tolerance
      moves one step toward the observed mean error ``1 - accuracy / 100``
      when it is more than one step away.

After the move every value is clamped to its safe range (``SAFE_RANGES``).

Idempotence
-----------
The stored parameters record how many resolved outcomes they were computed
from (``outcomes_applied``).  With no new outcomes, or fewer than
``min_data_points`` in total, the stored parameters are returned untouched.

Writes are a single ``compare_and_swap`` against the version that was read:
a crash before the swap leaves the previous parameters in place, and a
concurrent writer causes ``ConcurrentUpdateConflict``.
Each committed update carries a ``ParameterUpdate`` that the store writes
with the parameters, so the history has exactly one entry per parameter
version.  Skipped calls
write nothing.
``improve_with_retry`` retries once, then lets the conflict surface.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from demand_forecaster.config import LearningConfig
from demand_forecaster.exceptions import ConcurrentUpdateConflict
from demand_forecaster.models.learning import (
    LearningMetrics,
    ModelParameters,
    ParameterUpdate,
    PredictionRecord,
)
from demand_forecaster.monitoring.accuracy import compute_learning_metrics
from demand_forecaster.stores.protocols import OutcomeStore, ParameterStore
from demand_forecaster.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

SAFE_RANGES: dict[str, tuple[float, float]] = {
    "trend_sensitivity":  (0.5, 1.5),
    "seasonal_weight":    (0.5, 1.5),
    "market_factor":      (0.5, 1.5),
    "confidence":         (0.4, 0.95),
    "variance_tolerance": (0.05, 0.3),
}

FACTOR_PARAMETERS: dict[str, str] = {
    "upward_trend_detected":   "trend_sensitivity",
    "downward_trend_detected": "trend_sensitivity",
    "seasonal_high_period":    "seasonal_weight",
    "seasonal_low_period":     "seasonal_weight",
    "market_price_rising":     "market_factor",
    "market_price_falling":    "market_factor",
}


def clamp_parameters(params: ModelParameters) -> ModelParameters:
    """Clamp every tunable value into ``SAFE_RANGES``."""
    update = {
        name: round(min(hi, max(lo, getattr(params, name))), 4)
        for name, (lo, hi) in SAFE_RANGES.items()
    }
    return params.model_copy(update=update)


def propose_parameters(
    current: ModelParameters,
    metrics: LearningMetrics,
    step: float,
) -> ModelParameters:
    """Apply one bounded nudge per parameter from a metrics summary.

    Pure function; bookkeeping fields are carried over unchanged.
    """
    values = current.tuning_values()

    direction: dict[str, int] = {}
    for tag in metrics.improving_factors:
        if name := FACTOR_PARAMETERS.get(tag):
            direction[name] = direction.get(name, 0) + 1
    for tag in metrics.declining_factors:
        if name := FACTOR_PARAMETERS.get(tag):
            direction[name] = direction.get(name, 0) - 1
    for name, net in direction.items():
        if net > 0:
            values[name] += step
        elif net < 0:
            values[name] -= step

    accuracy = metrics.overall_accuracy / 100.0
    values["confidence"] = _step_toward(values["confidence"], accuracy, step)
    values["variance_tolerance"] = _step_toward(
        values["variance_tolerance"], 1.0 - accuracy, step
    )

    return clamp_parameters(current.model_copy(update=values))


def _step_toward(value: float, target: float, step: float) -> float:
    if target > value + step:
        return value + step
    if target < value - step:
        return value - step
    return value


class LearningEngine:
    """Stateful owner of per-commodity ``ModelParameters``.

    The engine itself holds no per-commodity state; both stores are injected
    so that independent instances (e.g. in parallel tests) never share data.

    Attributes:
        outcomes:   Outcome store holding prediction records.
        parameters: Parameter store holding current parameters.
        config:     ``[learning]`` section of ``AppConfig``.
    """

    def __init__(
        self,
        outcomes: OutcomeStore,
        parameters: ParameterStore,
        config: LearningConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.outcomes = outcomes
        self.parameters = parameters
        self.config = config or LearningConfig()
        self._clock = clock

    # ── Parameters ────────────────────────────────────────────────────────────

    def default_parameters(self) -> ModelParameters:
        """Starting parameters for a commodity with no stored row."""
        cfg = self.config
        return clamp_parameters(
            ModelParameters(
                trend_sensitivity=cfg.trend_sensitivity,
                seasonal_weight=cfg.seasonal_weight,
                market_factor=cfg.market_factor,
                confidence=cfg.confidence,
                variance_tolerance=cfg.variance_tolerance,
            )
        )

    def current_parameters(
        self,
        commodity_id: str,
        base_params: ModelParameters | None = None,
    ) -> ModelParameters:
        """Stored parameters, else ``base_params``, else configured defaults.

        Reads never wait for a writer; a forecast may see parameters one
        update behind.
        """
        stored = self.parameters.get(commodity_id)
        if stored is not None:
            return stored
        return base_params if base_params is not None else self.default_parameters()

    # ── Predictions ───────────────────────────────────────────────────────────

    def record_prediction(
        self,
        commodity_id: str,
        predicted_value: float,
        period_label: str,
        factors: Sequence[str],
        confidence: float,
        months_ahead: int = 1,
    ) -> PredictionRecord:
        """Append an unresolved prediction and return it with its id."""
        record = self.new_prediction(
            commodity_id, predicted_value, period_label, factors, confidence, months_ahead
        )
        prediction_id = self.outcomes.append_prediction(record)
        return record.model_copy(update={"id": prediction_id})

    def record_predictions(
        self, records: Sequence[PredictionRecord]
    ) -> list[PredictionRecord]:
        """Append several unresolved predictions in one store write.

        Records built with ``new_prediction`` are stored all together or not
        at all; the returned copies carry their ids.
        """
        ids = self.outcomes.append_predictions(records)
        return [r.model_copy(update={"id": pid}) for r, pid in zip(records, ids)]

    def new_prediction(
        self,
        commodity_id: str,
        predicted_value: float,
        period_label: str,
        factors: Sequence[str],
        confidence: float,
        months_ahead: int = 1,
    ) -> PredictionRecord:
        """Build an unsaved ``PredictionRecord`` stamped with the model version."""
        return PredictionRecord(
            commodity_id=commodity_id,
            predicted_value=predicted_value,
            period_label=period_label,
            months_ahead=months_ahead,
            factors_used=list(factors),
            confidence=confidence,
            model_version=self.config.model_version,
            created_at=self._clock(),
        )

    def resolve_prediction(self, prediction_id: str, actual_value: float) -> float:
        """Attach the observed value to a prediction; returns accuracy (0-100)."""
        accuracy = self.outcomes.resolve_prediction(prediction_id, actual_value)
        logger.info(
            "Resolved prediction %s | actual=%.2f | accuracy=%.1f%%",
            prediction_id, actual_value, accuracy,
        )
        return accuracy

    # ── Metrics ───────────────────────────────────────────────────────────────

    def get_learning_metrics(self, commodity_id: str) -> LearningMetrics:
        """Accuracy summary over the most recent resolved predictions."""
        records = self.outcomes.query_resolved(commodity_id, self.config.metrics_limit)
        return compute_learning_metrics(commodity_id, records)

    def parameter_history(
        self, commodity_id: str, limit: int | None = None
    ) -> list[ParameterUpdate]:
        """Committed learning updates for a commodity, newest first."""
        return self.parameters.history(commodity_id, limit or self.config.history_limit)

    # ── Updates ───────────────────────────────────────────────────────────────

    def improve_forecasting(
        self,
        commodity_id: str,
        base_params: ModelParameters | None = None,
    ) -> ModelParameters:
        """Nudge a commodity's parameters toward better historical fit.

        Args:
            commodity_id: Commodity to update.
            base_params:  Starting point when nothing is stored yet.

        Returns:
            The parameters now in effect (unchanged when there is nothing new
            to learn from).

        Raises:
            ConcurrentUpdateConflict: If another writer committed first.
        """
        stored = self.parameters.get(commodity_id)
        current = self.current_parameters(commodity_id, base_params)
        n_resolved = self.outcomes.count_resolved(commodity_id)

        if n_resolved < self.config.min_data_points:
            logger.debug(
                "Learning skipped for %s: %d resolved < %d required",
                commodity_id, n_resolved, self.config.min_data_points,
            )
            return current
        if stored is not None and n_resolved == stored.outcomes_applied:
            logger.debug("Learning skipped for %s: no new outcomes", commodity_id)
            return stored

        metrics = self.get_learning_metrics(commodity_id)
        proposed = propose_parameters(current, metrics, self.config.step).model_copy(
            update={"outcomes_applied": n_resolved}
        )
        expected_version = stored.version if stored is not None else 0
        audit = ParameterUpdate(
            commodity_id=commodity_id,
            previous=current.tuning_values(),
            updated=proposed.tuning_values(),
            overall_accuracy=round(metrics.overall_accuracy, 4),
            improving_factors=list(metrics.improving_factors),
            declining_factors=list(metrics.declining_factors),
            outcomes_applied=n_resolved,
            created_at=self._clock(),
        )
        committed = self.parameters.compare_and_swap(
            commodity_id, proposed, expected_version, update=audit
        )

        logger.info(
            "Parameters updated for %s | v%d | accuracy=%.1f%% | %s",
            commodity_id, committed.version, metrics.overall_accuracy,
            committed.tuning_values(),
        )
        return committed

    def improve_with_retry(
        self,
        commodity_id: str,
        base_params: ModelParameters | None = None,
    ) -> ModelParameters:
        """``improve_forecasting`` with exactly one retry on a version conflict."""
        try:
            return self.improve_forecasting(commodity_id, base_params)
        except ConcurrentUpdateConflict as exc:
            logger.warning("Retrying learning update once: %s", exc)
            return self.improve_forecasting(commodity_id, base_params)
