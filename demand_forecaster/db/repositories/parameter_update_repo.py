"""
Repository for ``parameter_updates``, the audit trail of learning updates.

Rows are append-only.  ``SqliteParameterStore`` inserts one on the same
connection as the parameter replacement it describes, so both commit or
neither does.  ``(commodity_id, version)`` is unique: one row per committed
parameter version.
"""

from __future__ import annotations

import json
import logging
import sqlite3

from demand_forecaster.db.repositories.base import BaseRepository
from demand_forecaster.models.learning import ParameterUpdate
from demand_forecaster.utils.time_utils import from_iso_utc, to_iso_utc

logger = logging.getLogger(__name__)


class ParameterUpdateRepository(BaseRepository):
    """Append/read access to ``parameter_updates``."""

    def insert(self, update: ParameterUpdate) -> int:
        """Insert one update and return its ``update_id``."""
        cur = self.execute(
            """
            INSERT INTO parameter_updates (
                commodity_id, version, previous_values, updated_values,
                overall_accuracy, improving_factors, declining_factors,
                outcomes_applied, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                update.commodity_id,
                update.version,
                json.dumps(update.previous, sort_keys=True),
                json.dumps(update.updated, sort_keys=True),
                update.overall_accuracy,
                json.dumps(update.improving_factors),
                json.dumps(update.declining_factors),
                update.outcomes_applied,
                to_iso_utc(update.created_at),
            ),
        )
        return int(cur.lastrowid)

    def get_for_commodity(self, commodity_id: str, limit: int) -> list[ParameterUpdate]:
        """Up to ``limit`` updates for a commodity, newest version first."""
        rows = self.fetchall(
            """
            SELECT * FROM parameter_updates
            WHERE commodity_id = ?
            ORDER BY version DESC
            LIMIT ?;
            """,
            (commodity_id, limit),
        )
        return [_row_to_update(r) for r in rows]


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_update(row: sqlite3.Row) -> ParameterUpdate:
    return ParameterUpdate(
        id=row["update_id"],
        commodity_id=row["commodity_id"],
        version=row["version"],
        previous=json.loads(row["previous_values"]),
        updated=json.loads(row["updated_values"]),
        overall_accuracy=row["overall_accuracy"],
        improving_factors=json.loads(row["improving_factors"]),
        declining_factors=json.loads(row["declining_factors"]),
        outcomes_applied=row["outcomes_applied"],
        created_at=from_iso_utc(row["created_at"]),
    )
