"""
Forecast engine: the public API over the pure components and the learning loop.

``ForecastEngine.forecast()`` runs one request end to end::

    validate → fetch history / prices / sentiment (Historical Data Source)
             → aggregate_monthly → estimate_trend + extract_seasonality
               + compute_market_adjustment
             → forecast_points
             → assess_risks + generate_recommendations
             → persist one PredictionRecord per point, in one write (Outcome Store, optional)
             → ForecastResult

Thin history never raises: empty inputs flow through every stage to a neutral
result with ``data_quality = "low"``.  Only bad input (``InvalidParameterError``)
and unreachable collaborators (``CollaboratorUnavailable``) escape.

``submit_feedback()`` resolves a stored prediction and, when
``[learning] auto_improve_on_feedback`` is on, runs one learning update for
that commodity (retried once on a version conflict).  The resolution is
committed first: if the update then fails, the error surfaces but the
feedback stays stored, and ``improve()`` picks it up later.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from demand_forecaster.config import AppConfig
from demand_forecaster.exceptions import (
    CollaboratorUnavailable,
    ConcurrentUpdateConflict,
    InvalidParameterError,
)
from demand_forecaster.features.market_signals import MarketAdjustment, compute_market_adjustment
from demand_forecaster.features.monthly_agg import (
    aggregate_monthly,
    data_quality_tier,
    historical_average,
    sorted_quantities,
)
from demand_forecaster.features.seasonality import extract_seasonality
from demand_forecaster.features.trend import estimate_trend
from demand_forecaster.forecasting.forecaster import (
    ForecastSignals,
    RandomSource,
    forecast_points,
)
from demand_forecaster.models.forecast import ConfidenceLevel, ForecastPoint, ForecastResult
from demand_forecaster.models.history import (
    MarketPricePoint,
    SentimentSignal,
    TransactionRecord,
)
from demand_forecaster.models.learning import LearningMetrics, ModelParameters, ParameterUpdate
from demand_forecaster.monitoring.learning import LearningEngine
from demand_forecaster.recommendations.actions import generate_recommendations
from demand_forecaster.recommendations.risk import assess_risks
from demand_forecaster.stores.protocols import (
    HistoricalDataSource,
    OutcomeStore,
    ParameterStore,
)
from demand_forecaster.utils.time_utils import days_before, months_before, utcnow

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_THRESHOLD   = 0.8
MEDIUM_CONFIDENCE_THRESHOLD = 0.6
CONFIDENCE_CAP              = 0.95
DEFAULT_ACCURACY_SCALE      = 0.7

# Failures a remote data source client is expected to raise.
_COLLABORATOR_ERRORS = (ConnectionError, TimeoutError, OSError)


# ── Factor tags ───────────────────────────────────────────────────────────────

HISTORICAL_SALES_PATTERN = "historical_sales_pattern"


def point_factor_tags(point: ForecastPoint) -> list[str]:
    """Factor tags active for one forecast point.

    Tags are what the learning engine attributes accuracy to, so a factor
    only appears when it actually moved the estimate away from neutral.
    """
    fb = point.factor_breakdown
    tags = [HISTORICAL_SALES_PATTERN]

    if fb.trend > 1:
        tags.append("upward_trend_detected")
    elif fb.trend < 1:
        tags.append("downward_trend_detected")

    if fb.seasonal > 1:
        tags.append("seasonal_high_period")
    elif fb.seasonal < 1:
        tags.append("seasonal_low_period")

    if fb.market > 1:
        tags.append("market_price_rising")
    elif fb.market < 1:
        tags.append("market_price_falling")

    if fb.economic > 0:
        tags.append("positive_economic_outlook")
    elif fb.economic < 0:
        tags.append("negative_economic_outlook")

    return tags


def confidence_label(score: float) -> ConfidenceLevel:
    """``"high"`` above 0.8, ``"medium"`` above 0.6, otherwise ``"low"``."""
    if score > HIGH_CONFIDENCE_THRESHOLD:
        return "high"
    if score > MEDIUM_CONFIDENCE_THRESHOLD:
        return "medium"
    return "low"


def adjusted_confidence(params: ModelParameters, metrics: LearningMetrics) -> float:
    """Parameter confidence scaled by historical accuracy, capped at 0.95.

    With no resolved history the scale is 0.7.
    """
    scale = metrics.overall_accuracy / 100.0 or DEFAULT_ACCURACY_SCALE
    return round(min(CONFIDENCE_CAP, params.confidence * scale), 4)


def _period_label(horizon_months: int) -> str:
    return f"{horizon_months} month" if horizon_months == 1 else f"{horizon_months} months"


# ── Engine ────────────────────────────────────────────────────────────────────

class ForecastEngine:
    """Demand forecasting with a per-commodity feedback loop.

    All collaborators are injected; the engine holds no per-commodity state
    of its own, so two engines over separate stores never interfere.

    Args:
        history:    Read-only historical data source.
        outcomes:   Outcome store for prediction records.
        parameters: Per-commodity parameter store.
        config:     Application config; defaults apply when ``None``.
        rng:        Jitter source. Defaults to ``random.Random`` seeded with
                    ``[forecast] jitter_seed`` (fresh entropy when unset).
        clock:      Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        history: HistoricalDataSource,
        outcomes: OutcomeStore,
        parameters: ParameterStore,
        config: Optional[AppConfig] = None,
        rng: Optional[RandomSource] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or AppConfig()
        self.history = history
        self.outcomes = outcomes
        self.learning = LearningEngine(
            outcomes, parameters, config=self.config.learning, clock=clock
        )
        self.rng: RandomSource = (
            rng if rng is not None else random.Random(self.config.forecast.jitter_seed)
        )
        self._clock = clock

    # ── Forecast ──────────────────────────────────────────────────────────────

    def forecast(
        self,
        commodity_id: str,
        horizon_months: Optional[int] = None,
        persist: Optional[bool] = None,
    ) -> ForecastResult:
        """Forecast monthly demand for ``commodity_id``.

        Args:
            commodity_id:   Commodity to forecast.
            horizon_months: Months ahead; defaults to
                            ``[forecast] default_horizon_months``.
            persist:        Store one ``PredictionRecord`` per point; defaults
                            to ``[forecast] persist_predictions``.

        Returns:
            ``ForecastResult``.

        Raises:
            InvalidParameterError:   Empty commodity id or horizon out of range.
            CollaboratorUnavailable: A data source or store failed.
        """
        cfg = self.config.forecast
        horizon = cfg.default_horizon_months if horizon_months is None else horizon_months
        commodity_id = self._validate_commodity(commodity_id)
        if horizon <= 0:
            raise InvalidParameterError("horizon_months", f"must be >= 1, got {horizon}.")
        if horizon > cfg.max_horizon_months:
            raise InvalidParameterError(
                "horizon_months",
                f"must be <= {cfg.max_horizon_months}, got {horizon}.",
            )
        persist = cfg.persist_predictions if persist is None else persist

        as_of = self._clock()
        params = self.learning.current_parameters(commodity_id)
        transactions, prices, signals = self._fetch_inputs(commodity_id, as_of)

        aggregates = aggregate_monthly(transactions)
        quantities = sorted_quantities(aggregates)
        trend = estimate_trend(quantities, params.trend_sensitivity)
        seasonality = extract_seasonality(aggregates)
        market: MarketAdjustment = compute_market_adjustment(
            prices, signals, params.market_factor
        )
        avg = historical_average(aggregates)
        quality = data_quality_tier(len(aggregates))

        points = forecast_points(
            ForecastSignals(
                historical_average=avg,
                trend=trend,
                seasonality=seasonality,
                market=market,
            ),
            params,
            as_of,
            horizon,
            self.rng,
        )

        risks = assess_risks(
            trend.coefficient,
            seasonality.volatility,
            market.market_trend,
            market.economic_impact,
        )
        recommendations = generate_recommendations(
            trend.factor,
            risks,
            points[0].factor_breakdown.seasonal,
            quality,
            params.confidence,
        )

        metrics = self.learning.get_learning_metrics(commodity_id)
        score = adjusted_confidence(params, metrics)

        point_tags = [point_factor_tags(p) for p in points]
        factors = list(dict.fromkeys(tag for tags in point_tags for tag in tags))

        prediction_ids: list[str] = []
        if persist:
            stored = self.learning.record_predictions(
                [
                    self.learning.new_prediction(
                        commodity_id,
                        predicted_value=point.predicted_quantity,
                        period_label=point.period_key,
                        factors=tags,
                        confidence=point.confidence,
                        months_ahead=point.months_ahead,
                    )
                    for point, tags in zip(points, point_tags)
                ]
            )
            prediction_ids = [r.id or "" for r in stored]

        logger.info(
            "Forecast %s | horizon=%d | months=%d | avg=%.2f | trend=%.3f | quality=%s",
            commodity_id, horizon, len(aggregates), avg, trend.factor, quality,
        )

        return ForecastResult(
            commodity_id=commodity_id,
            prediction_period=_period_label(horizon),
            monthly_forecast=points,
            factors=factors,
            recommendations=recommendations,
            historical_average=round(avg, 2),
            confidence_level=confidence_label(score),
            confidence_score=score,
            risk_factors=risks,
            data_quality=quality,
            model_improvements=list(metrics.recommendation_adjustments),
            accuracy_history=round(metrics.overall_accuracy, 2),
            parameters_used=params,
            data_points_analyzed=len(transactions) + len(prices),
            model_version=self.config.learning.model_version,
            prediction_ids=prediction_ids,
            generated_at=as_of,
        )

    # ── Feedback loop ─────────────────────────────────────────────────────────

    def submit_feedback(self, prediction_id: str, actual_value: float) -> float:
        """Attach an observed value to a stored prediction.

        The resolution is committed before the learning update runs.  An
        error from the update (``ConcurrentUpdateConflict`` after its retry,
        or ``CollaboratorUnavailable`` from the parameter store) is logged and
        re-raised, but the feedback itself is already stored: do not resubmit
        it (that raises ``PredictionAlreadyResolved``); call ``improve()``
        instead.

        Returns:
            Accuracy percentage (0-100) of the resolved prediction.

        Raises:
            InvalidParameterError:     Empty id or negative actual value.
            PredictionNotFound:        Unknown id.
            PredictionAlreadyResolved: The prediction already has an actual.
            ConcurrentUpdateConflict:  Learning update lost twice; feedback kept.
            CollaboratorUnavailable:   A store failed.
        """
        if not prediction_id or not prediction_id.strip():
            raise InvalidParameterError("prediction_id", "must not be empty.")
        if actual_value < 0:
            raise InvalidParameterError(
                "actual_value", f"must be non-negative, got {actual_value}."
            )

        record = self.outcomes.get_prediction(prediction_id)
        accuracy = self.learning.resolve_prediction(prediction_id, actual_value)

        if self.config.learning.auto_improve_on_feedback:
            try:
                self.learning.improve_with_retry(record.commodity_id)
            except (ConcurrentUpdateConflict, CollaboratorUnavailable) as exc:
                logger.error(
                    "Feedback for %s stored (accuracy=%.1f%%) but learning update failed: %s",
                    prediction_id, accuracy, exc,
                )
                raise
        return accuracy

    def get_metrics(self, commodity_id: str) -> LearningMetrics:
        """Accuracy summary for one commodity's resolved predictions."""
        return self.learning.get_learning_metrics(self._validate_commodity(commodity_id))

    def improve(self, commodity_id: str) -> ModelParameters:
        """Run one learning update now; returns the parameters in effect."""
        return self.learning.improve_with_retry(self._validate_commodity(commodity_id))

    def parameter_history(
        self, commodity_id: str, limit: Optional[int] = None
    ) -> list[ParameterUpdate]:
        """Committed learning updates for one commodity, newest first."""
        return self.learning.parameter_history(self._validate_commodity(commodity_id), limit)

    # ── Private helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _validate_commodity(commodity_id: str) -> str:
        if not commodity_id or not commodity_id.strip():
            raise InvalidParameterError("commodity_id", "must not be empty.")
        return commodity_id.strip()

    def _fetch_inputs(
        self, commodity_id: str, as_of: datetime
    ) -> tuple[list[TransactionRecord], list[MarketPricePoint], list[SentimentSignal]]:
        cfg = self.config.forecast
        try:
            transactions = self.history.fetch_transactions(
                commodity_id, months_before(as_of, cfg.lookback_months)
            )
            prices = self.history.fetch_market_prices(
                commodity_id,
                days_before(as_of, cfg.market_lookback_days),
                cfg.market_price_limit,
            )
            signals = self.history.fetch_sentiment_signals(
                commodity_id,
                days_before(as_of, cfg.sentiment_lookback_days),
                cfg.sentiment_limit,
            )
        except _COLLABORATOR_ERRORS as exc:
            logger.error("Historical data source failed for %s: %s", commodity_id, exc)
            raise CollaboratorUnavailable("historical_data_source", str(exc)) from exc

        logger.debug(
            "Fetched %s | transactions=%d | prices=%d | signals=%d",
            commodity_id, len(transactions), len(prices), len(signals),
        )
        return list(transactions), list(prices), list(signals)
