"""
In-process implementations of the collaborator protocols.

Used by the test suite and by callers that embed the engine without a
database.  Each store guards its state with a single ``threading.Lock``;
``InMemoryParameterStore.compare_and_swap`` performs the version check and the
replacement under that lock, so concurrent learning updates for one commodity
cannot interleave; the history entry for an update is appended under the same
lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Optional
from uuid import uuid4

from demand_forecaster.exceptions import (
    ConcurrentUpdateConflict,
    PredictionAlreadyResolved,
    PredictionNotFound,
)
from demand_forecaster.models.history import (
    MarketPricePoint,
    SentimentSignal,
    TransactionRecord,
)
from demand_forecaster.models.learning import (
    ModelParameters,
    ParameterUpdate,
    PredictionRecord,
)
from demand_forecaster.monitoring.accuracy import compute_accuracy
from demand_forecaster.utils.time_utils import ensure_utc, utcnow


class InMemoryHistoricalDataSource:
    """Holds transactions, prices and sentiment per commodity in lists."""

    def __init__(self) -> None:
        self._transactions: dict[str, list[TransactionRecord]] = {}
        self._prices: dict[str, list[MarketPricePoint]] = {}
        self._signals: dict[str, list[SentimentSignal]] = {}
        self._lock = threading.Lock()

    def add_transactions(self, records: Iterable[TransactionRecord]) -> int:
        count = 0
        with self._lock:
            for rec in records:
                self._transactions.setdefault(rec.commodity_id, []).append(rec)
                count += 1
        return count

    def import_history(
        self,
        transactions: Iterable[TransactionRecord] = (),
        prices: Optional[Mapping[str, Sequence[MarketPricePoint]]] = None,
        signals: Optional[Mapping[str, Sequence[SentimentSignal]]] = None,
    ) -> int:
        """Add a whole import under one lock; returns the number of rows added."""
        count = 0
        with self._lock:
            for rec in transactions:
                self._transactions.setdefault(rec.commodity_id, []).append(rec)
                count += 1
            for commodity_id, points in (prices or {}).items():
                self._prices.setdefault(commodity_id, []).extend(points)
                count += len(points)
            for commodity_id, readings in (signals or {}).items():
                self._signals.setdefault(commodity_id, []).extend(readings)
                count += len(readings)
        return count

    def add_market_prices(self, commodity_id: str, prices: Iterable[MarketPricePoint]) -> int:
        with self._lock:
            bucket = self._prices.setdefault(commodity_id, [])
            before = len(bucket)
            bucket.extend(prices)
            return len(bucket) - before

    def add_sentiment_signals(
        self, commodity_id: str, signals: Iterable[SentimentSignal]
    ) -> int:
        with self._lock:
            bucket = self._signals.setdefault(commodity_id, [])
            before = len(bucket)
            bucket.extend(signals)
            return len(bucket) - before

    def fetch_transactions(self, commodity_id: str, since: datetime) -> list[TransactionRecord]:
        since = ensure_utc(since)
        with self._lock:
            rows = list(self._transactions.get(commodity_id, []))
        return sorted(
            (r for r in rows if ensure_utc(r.timestamp) >= since),
            key=lambda r: ensure_utc(r.timestamp),
        )

    def fetch_market_prices(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[MarketPricePoint]:
        since = ensure_utc(since)
        with self._lock:
            rows = list(self._prices.get(commodity_id, []))
        recent = sorted(
            (p for p in rows if ensure_utc(p.timestamp) >= since),
            key=lambda p: ensure_utc(p.timestamp),
            reverse=True,
        )
        return recent[:limit]

    def fetch_sentiment_signals(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[SentimentSignal]:
        since = ensure_utc(since)
        with self._lock:
            rows = list(self._signals.get(commodity_id, []))
        # Undated signals are treated as current.
        recent = [s for s in rows if s.timestamp is None or ensure_utc(s.timestamp) >= since]
        recent.sort(
            key=lambda s: (s.timestamp is None, ensure_utc(s.timestamp) if s.timestamp else since),
            reverse=True,
        )
        return recent[:limit]


class InMemoryOutcomeStore:
    """Prediction records keyed by a generated UUID string."""

    def __init__(self) -> None:
        self._records: dict[str, PredictionRecord] = {}
        self._lock = threading.Lock()

    def append_prediction(self, record: PredictionRecord) -> str:
        prediction_id = record.id or str(uuid4())
        with self._lock:
            self._records[prediction_id] = record.model_copy(update={"id": prediction_id})
        return prediction_id

    def append_predictions(self, records: Sequence[PredictionRecord]) -> list[str]:
        stored = [r.model_copy(update={"id": r.id or str(uuid4())}) for r in records]
        with self._lock:
            for record in stored:
                self._records[record.id] = record
        return [r.id for r in stored]

    def get_prediction(self, prediction_id: str) -> PredictionRecord:
        with self._lock:
            record = self._records.get(prediction_id)
        if record is None:
            raise PredictionNotFound(prediction_id)
        return record

    def resolve_prediction(self, prediction_id: str, actual_value: float) -> float:
        with self._lock:
            record = self._records.get(prediction_id)
            if record is None:
                raise PredictionNotFound(prediction_id)
            if record.is_resolved:
                raise PredictionAlreadyResolved(prediction_id)
            accuracy = compute_accuracy(record.predicted_value, actual_value)
            self._records[prediction_id] = record.model_copy(
                update={
                    "actual_value": actual_value,
                    "accuracy_percentage": accuracy,
                    "outcome_date": utcnow(),
                }
            )
        return accuracy

    def query_resolved(self, commodity_id: str, limit: int) -> list[PredictionRecord]:
        with self._lock:
            resolved = [
                r for r in self._records.values()
                if r.commodity_id == commodity_id and r.is_resolved
            ]
        resolved.sort(key=lambda r: (r.outcome_date, r.id), reverse=True)
        return resolved[:limit]

    def count_resolved(self, commodity_id: str) -> int:
        with self._lock:
            return sum(
                1 for r in self._records.values()
                if r.commodity_id == commodity_id and r.is_resolved
            )


class InMemoryParameterStore:
    """``ModelParameters`` per commodity with a version check on write."""

    def __init__(self) -> None:
        self._params: dict[str, ModelParameters] = {}
        self._history: dict[str, list[ParameterUpdate]] = {}
        self._lock = threading.Lock()

    def get(self, commodity_id: str) -> Optional[ModelParameters]:
        with self._lock:
            return self._params.get(commodity_id)

    def compare_and_swap(
        self,
        commodity_id: str,
        params: ModelParameters,
        expected_version: int,
        update: Optional[ParameterUpdate] = None,
    ) -> ModelParameters:
        with self._lock:
            current = self._params.get(commodity_id)
            actual = current.version if current is not None else 0
            if actual != expected_version:
                raise ConcurrentUpdateConflict(
                    commodity_id, expected_version, current.version if current else None
                )
            stored = params.model_copy(update={"version": expected_version + 1})
            self._params[commodity_id] = stored
            if update is not None:
                entries = self._history.setdefault(commodity_id, [])
                entries.append(
                    update.model_copy(
                        update={"id": len(entries) + 1, "version": stored.version}
                    )
                )
            return stored

    def history(self, commodity_id: str, limit: int) -> list[ParameterUpdate]:
        with self._lock:
            entries = list(self._history.get(commodity_id, []))
        return sorted(entries, key=lambda u: u.version, reverse=True)[:limit]
