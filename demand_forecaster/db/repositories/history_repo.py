"""
Repositories for historical inputs: transactions, market prices, sentiment.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from datetime import datetime

from demand_forecaster.db.repositories.base import BaseRepository
from demand_forecaster.models.history import (
    MarketPricePoint,
    SentimentSignal,
    TransactionRecord,
)
from demand_forecaster.utils.time_utils import from_iso_utc, to_iso_utc, utcnow

logger = logging.getLogger(__name__)


class TransactionRepository(BaseRepository):
    """Read/write access to ``transactions``."""

    def insert_many(self, records: Iterable[TransactionRecord]) -> int:
        """Insert transactions; returns the number written."""
        rows = [
            (r.commodity_id, to_iso_utc(r.timestamp), r.quantity, r.unit_price)
            for r in records
        ]
        if not rows:
            return 0
        self.executemany(
            """
            INSERT INTO transactions (commodity_id, occurred_at, quantity, unit_price)
            VALUES (?, ?, ?, ?);
            """,
            rows,
        )
        return len(rows)

    def get_since(self, commodity_id: str, since: datetime) -> list[TransactionRecord]:
        """Transactions at or after ``since``, oldest first."""
        rows = self.fetchall(
            """
            SELECT * FROM transactions
            WHERE commodity_id = ? AND occurred_at >= ?
            ORDER BY occurred_at ASC, txn_id ASC;
            """,
            (commodity_id, to_iso_utc(since)),
        )
        return [_row_to_transaction(r) for r in rows]


class MarketPriceRepository(BaseRepository):
    """Read/write access to ``market_prices``."""

    def insert_many(self, commodity_id: str, points: Iterable[MarketPricePoint]) -> int:
        """Insert price points for one commodity; returns the number written."""
        rows = [(commodity_id, to_iso_utc(p.timestamp), p.price) for p in points]
        if not rows:
            return 0
        self.executemany(
            "INSERT INTO market_prices (commodity_id, observed_at, price) VALUES (?, ?, ?);",
            rows,
        )
        return len(rows)

    def get_recent(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[MarketPricePoint]:
        """Up to ``limit`` newest prices at or after ``since``, newest first."""
        rows = self.fetchall(
            """
            SELECT observed_at, price FROM market_prices
            WHERE commodity_id = ? AND observed_at >= ?
            ORDER BY observed_at DESC, price_id DESC
            LIMIT ?;
            """,
            (commodity_id, to_iso_utc(since), limit),
        )
        return [
            MarketPricePoint(timestamp=from_iso_utc(r["observed_at"]), price=r["price"])
            for r in rows
        ]


class SentimentRepository(BaseRepository):
    """Read/write access to ``sentiment_signals``."""

    def insert_many(self, commodity_id: str, signals: Iterable[SentimentSignal]) -> int:
        """Insert sentiment readings; undated readings are stamped now."""
        now = utcnow()
        rows = [
            (commodity_id, to_iso_utc(s.timestamp or now), s.sentiment, s.growth_forecast)
            for s in signals
        ]
        if not rows:
            return 0
        self.executemany(
            """
            INSERT INTO sentiment_signals (commodity_id, published_at, sentiment, growth_forecast)
            VALUES (?, ?, ?, ?);
            """,
            rows,
        )
        return len(rows)

    def get_recent(
        self, commodity_id: str, since: datetime, limit: int
    ) -> list[SentimentSignal]:
        """Up to ``limit`` newest readings at or after ``since``, newest first."""
        rows = self.fetchall(
            """
            SELECT published_at, sentiment, growth_forecast FROM sentiment_signals
            WHERE commodity_id = ? AND published_at >= ?
            ORDER BY published_at DESC, signal_id DESC
            LIMIT ?;
            """,
            (commodity_id, to_iso_utc(since), limit),
        )
        return [
            SentimentSignal(
                timestamp=from_iso_utc(r["published_at"]),
                sentiment=r["sentiment"],
                growth_forecast=r["growth_forecast"],
            )
            for r in rows
        ]


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_transaction(row: sqlite3.Row) -> TransactionRecord:
    return TransactionRecord(
        commodity_id=row["commodity_id"],
        timestamp=from_iso_utc(row["occurred_at"]),
        quantity=row["quantity"],
        unit_price=row["unit_price"],
    )
