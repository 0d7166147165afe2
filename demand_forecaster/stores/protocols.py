"""
Collaborator contracts consumed by the engine.

``HistoricalDataSource`` is read-only access to transactions, market prices
and sentiment readings.  ``OutcomeStore`` appends and resolves prediction
records.  ``ParameterStore`` holds one ``ModelParameters`` row per commodity
and only accepts whole-object replacements that name the version they were
computed from; each replacement may carry a ``ParameterUpdate`` that is stored
atomically with it.

Implementations: ``stores.memory`` (process-local) and ``stores.sqlite``.
Implementations raise ``CollaboratorUnavailable`` when their backing service
cannot be reached; they never retry.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

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


@runtime_checkable
class HistoricalDataSource(Protocol):
    def fetch_transactions(
        self, commodity_id: str, since: datetime
    ) -> list[TransactionRecord]:
        """Transactions for ``commodity_id`` at or after ``since``, oldest first."""
        ...

    def fetch_market_prices(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[MarketPricePoint]:
        """Up to ``limit`` most recent prices at or after ``since``."""
        ...

    def fetch_sentiment_signals(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[SentimentSignal]:
        """Up to ``limit`` most recent sentiment readings at or after ``since``."""
        ...


@runtime_checkable
class OutcomeStore(Protocol):
    def append_prediction(self, record: PredictionRecord) -> str:
        """Persist an unresolved record and return its id."""
        ...

    def append_predictions(self, records: Sequence[PredictionRecord]) -> list[str]:
        """Persist several unresolved records together; all or none are stored.

        Returns the ids in input order.
        """
        ...

    def get_prediction(self, prediction_id: str) -> PredictionRecord:
        """Fetch one record. Raises ``PredictionNotFound``."""
        ...

    def resolve_prediction(self, prediction_id: str, actual_value: float) -> float:
        """Attach the actual value once and return the accuracy percentage.

        Raises ``PredictionNotFound`` or ``PredictionAlreadyResolved``.
        """
        ...

    def query_resolved(self, commodity_id: str, limit: int) -> list[PredictionRecord]:
        """Up to ``limit`` most recently resolved records for a commodity."""
        ...

    def count_resolved(self, commodity_id: str) -> int:
        """Total resolved records for a commodity."""
        ...


@runtime_checkable
class ParameterStore(Protocol):
    def get(self, commodity_id: str) -> Optional[ModelParameters]:
        """Current parameters, or ``None`` for a commodity never written."""
        ...

    def compare_and_swap(
        self,
        commodity_id: str,
        params: ModelParameters,
        expected_version: int,
        update: Optional[ParameterUpdate] = None,
    ) -> ModelParameters:
        """Replace the parameters iff the stored version equals ``expected_version``.

        ``expected_version = 0`` means "no row yet".  The stored copy gets
        ``version = expected_version + 1`` and is returned.  When ``update`` is
        given it is appended to the history with that version, in the same
        write as the parameters.

        Raises ``ConcurrentUpdateConflict`` on a version mismatch.
        """
        ...

    def history(self, commodity_id: str, limit: int) -> list[ParameterUpdate]:
        """Up to ``limit`` recorded updates for a commodity, newest first."""
        ...
