"""
SQLite-backed implementations of the collaborator protocols.

Each call opens its own connection through ``get_connection()`` so the stores
are safe to share between threads; SQLite serialises the writers.  Any
``sqlite3.Error`` is wrapped in ``CollaboratorUnavailable`` and re-raised.
Domain errors (``PredictionNotFound``, ``PredictionAlreadyResolved``,
``ConcurrentUpdateConflict``) pass through untouched.

Usage::

    from demand_forecaster.config import load_config
    from demand_forecaster.stores.sqlite import SqliteHistoricalDataSource

    config = load_config()
    history = SqliteHistoricalDataSource(config.database)
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Optional
from uuid import uuid4

from demand_forecaster.config import DatabaseConfig
from demand_forecaster.db.connection import get_connection
from demand_forecaster.db.repositories.history_repo import (
    MarketPriceRepository,
    SentimentRepository,
    TransactionRepository,
)
from demand_forecaster.db.repositories.parameter_repo import ModelParameterRepository
from demand_forecaster.db.repositories.parameter_update_repo import ParameterUpdateRepository
from demand_forecaster.db.repositories.prediction_repo import PredictionRecordRepository
from demand_forecaster.exceptions import (
    CollaboratorUnavailable,
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
from demand_forecaster.utils.time_utils import to_iso_utc, utcnow

logger = logging.getLogger(__name__)


class _SqliteStore:
    """Shared connection handling for the SQLite stores."""

    collaborator = "sqlite"

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            with get_connection(
                self.config.db_path,
                wal_mode=self.config.wal_mode,
                busy_timeout_ms=self.config.busy_timeout_ms,
            ) as conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("%s failed: %s", self.collaborator, exc)
            raise CollaboratorUnavailable(self.collaborator, str(exc)) from exc


class SqliteHistoricalDataSource(_SqliteStore):
    """``HistoricalDataSource`` over the ``transactions``, ``market_prices``
    and ``sentiment_signals`` tables."""

    collaborator = "historical_data_source"

    def add_transactions(self, records: Iterable[TransactionRecord]) -> int:
        with self._connect() as conn:
            return TransactionRepository(conn).insert_many(records)

    def add_market_prices(
        self, commodity_id: str, prices: Iterable[MarketPricePoint]
    ) -> int:
        with self._connect() as conn:
            return MarketPriceRepository(conn).insert_many(commodity_id, prices)

    def add_sentiment_signals(
        self, commodity_id: str, signals: Iterable[SentimentSignal]
    ) -> int:
        with self._connect() as conn:
            return SentimentRepository(conn).insert_many(commodity_id, signals)

    def import_history(
        self,
        transactions: Iterable[TransactionRecord] = (),
        prices: Optional[Mapping[str, Sequence[MarketPricePoint]]] = None,
        signals: Optional[Mapping[str, Sequence[SentimentSignal]]] = None,
    ) -> int:
        """Write a whole import in one transaction; returns the rows inserted.

        A failure on any row rolls back every table, so an import is either
        fully stored or not at all.
        """
        with self._connect() as conn:
            count = TransactionRepository(conn).insert_many(transactions)
            price_repo = MarketPriceRepository(conn)
            for commodity_id, points in (prices or {}).items():
                count += price_repo.insert_many(commodity_id, points)
            signal_repo = SentimentRepository(conn)
            for commodity_id, readings in (signals or {}).items():
                count += signal_repo.insert_many(commodity_id, readings)
        return count

    def fetch_transactions(
        self, commodity_id: str, since: datetime
    ) -> list[TransactionRecord]:
        with self._connect() as conn:
            return TransactionRepository(conn).get_since(commodity_id, since)

    def fetch_market_prices(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[MarketPricePoint]:
        with self._connect() as conn:
            return MarketPriceRepository(conn).get_recent(commodity_id, since, limit)

    def fetch_sentiment_signals(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[SentimentSignal]:
        with self._connect() as conn:
            return SentimentRepository(conn).get_recent(commodity_id, since, limit)


class SqliteOutcomeStore(_SqliteStore):
    """``OutcomeStore`` over ``prediction_records``."""

    collaborator = "outcome_store"

    def append_prediction(self, record: PredictionRecord) -> str:
        prediction_id = record.id or str(uuid4())
        with self._connect() as conn:
            PredictionRecordRepository(conn).insert(
                record.model_copy(update={"id": prediction_id})
            )
        return prediction_id

    def append_predictions(self, records: Sequence[PredictionRecord]) -> list[str]:
        stored = [r.model_copy(update={"id": r.id or str(uuid4())}) for r in records]
        with self._connect() as conn:
            repo = PredictionRecordRepository(conn)
            for record in stored:
                repo.insert(record)
        return [r.id for r in stored]

    def get_prediction(self, prediction_id: str) -> PredictionRecord:
        with self._connect() as conn:
            record = PredictionRecordRepository(conn).get(prediction_id)
        if record is None:
            raise PredictionNotFound(prediction_id)
        return record

    def resolve_prediction(self, prediction_id: str, actual_value: float) -> float:
        with self._connect() as conn:
            repo = PredictionRecordRepository(conn)
            record = repo.get(prediction_id)
            if record is None:
                raise PredictionNotFound(prediction_id)
            if record.is_resolved:
                raise PredictionAlreadyResolved(prediction_id)

            accuracy = compute_accuracy(record.predicted_value, actual_value)
            if not repo.mark_resolved(
                prediction_id, actual_value, accuracy, to_iso_utc(utcnow())
            ):
                raise PredictionAlreadyResolved(prediction_id)
        return accuracy

    def query_resolved(self, commodity_id: str, limit: int) -> list[PredictionRecord]:
        with self._connect() as conn:
            return PredictionRecordRepository(conn).get_resolved(commodity_id, limit)

    def count_resolved(self, commodity_id: str) -> int:
        with self._connect() as conn:
            return PredictionRecordRepository(conn).count_resolved(commodity_id)


class SqliteParameterStore(_SqliteStore):
    """``ParameterStore`` over ``model_parameters`` and ``parameter_updates``."""

    collaborator = "parameter_store"

    def get(self, commodity_id: str) -> Optional[ModelParameters]:
        with self._connect() as conn:
            return ModelParameterRepository(conn).get(commodity_id)

    def compare_and_swap(
        self,
        commodity_id: str,
        params: ModelParameters,
        expected_version: int,
        update: Optional[ParameterUpdate] = None,
    ) -> ModelParameters:
        with self._connect() as conn:
            stored = ModelParameterRepository(conn).compare_and_swap(
                commodity_id, params, expected_version
            )
            if update is not None:
                ParameterUpdateRepository(conn).insert(
                    update.model_copy(update={"version": stored.version})
                )
        return stored

    def history(self, commodity_id: str, limit: int) -> list[ParameterUpdate]:
        with self._connect() as conn:
            return ParameterUpdateRepository(conn).get_for_commodity(commodity_id, limit)
