"""
Repository for ``prediction_records`` — the outcome store's table.

A record is inserted unresolved and updated exactly once.  The resolving
``UPDATE`` is conditional on ``actual_value IS NULL`` so two concurrent
resolutions cannot both succeed.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Optional

from demand_forecaster.db.repositories.base import BaseRepository
from demand_forecaster.models.learning import PredictionRecord
from demand_forecaster.utils.time_utils import from_iso_utc, to_iso_utc

logger = logging.getLogger(__name__)


class PredictionRecordRepository(BaseRepository):
    """Read/write access to ``prediction_records``."""

    def insert(self, record: PredictionRecord) -> None:
        """Insert a record. ``record.id`` must already be set.

        Raises:
            ValueError: If ``record.id`` is ``None``.
        """
        if record.id is None:
            raise ValueError("Cannot insert PredictionRecord without an id.")
        self.execute(
            """
            INSERT INTO prediction_records (
                prediction_id, commodity_id, predicted_value, period_label,
                months_ahead, factors_used, confidence, model_version, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                record.id,
                record.commodity_id,
                record.predicted_value,
                record.period_label,
                record.months_ahead,
                json.dumps(record.factors_used),
                record.confidence,
                record.model_version,
                to_iso_utc(record.created_at),
            ),
        )

    def get(self, prediction_id: str) -> Optional[PredictionRecord]:
        """Fetch a record by id, or ``None``."""
        row = self.fetchone(
            "SELECT * FROM prediction_records WHERE prediction_id = ?;", (prediction_id,)
        )
        return _row_to_record(row) if row else None

    def mark_resolved(
        self,
        prediction_id: str,
        actual_value: float,
        accuracy: float,
        outcome_date: str,
    ) -> bool:
        """Attach the outcome if the record is still unresolved.

        Returns:
            ``True`` if a row was updated, ``False`` if it was already resolved
            (or does not exist).
        """
        cur = self.execute(
            """
            UPDATE prediction_records SET
                actual_value        = ?,
                accuracy_percentage = ?,
                outcome_date        = ?
            WHERE prediction_id = ? AND actual_value IS NULL;
            """,
            (actual_value, accuracy, outcome_date, prediction_id),
        )
        return cur.rowcount == 1

    def get_resolved(self, commodity_id: str, limit: int) -> list[PredictionRecord]:
        """Most recently resolved records first."""
        rows = self.fetchall(
            """
            SELECT * FROM prediction_records
            WHERE commodity_id = ? AND actual_value IS NOT NULL
            ORDER BY outcome_date DESC, prediction_id DESC
            LIMIT ?;
            """,
            (commodity_id, limit),
        )
        return [_row_to_record(r) for r in rows]

    def count_resolved(self, commodity_id: str) -> int:
        row = self.fetchone(
            """
            SELECT COUNT(*) AS n FROM prediction_records
            WHERE commodity_id = ? AND actual_value IS NOT NULL;
            """,
            (commodity_id,),
        )
        return int(row["n"]) if row else 0


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_record(row: sqlite3.Row) -> PredictionRecord:
    return PredictionRecord(
        id=row["prediction_id"],
        commodity_id=row["commodity_id"],
        predicted_value=row["predicted_value"],
        period_label=row["period_label"],
        months_ahead=row["months_ahead"],
        factors_used=json.loads(row["factors_used"]),
        confidence=row["confidence"],
        model_version=row["model_version"],
        created_at=from_iso_utc(row["created_at"]),
        actual_value=row["actual_value"],
        accuracy_percentage=row["accuracy_percentage"],
        outcome_date=from_iso_utc(row["outcome_date"]) if row["outcome_date"] else None,
    )
