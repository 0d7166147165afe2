"""
Repository for ``model_parameters`` with optimistic concurrency.

Every write names the version it was computed from.  The first write for a
commodity uses version 0 and inserts; later writes update only when the
stored version still matches.  A zero row count means another writer got
there first.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from demand_forecaster.db.repositories.base import BaseRepository
from demand_forecaster.exceptions import ConcurrentUpdateConflict
from demand_forecaster.models.learning import ModelParameters

logger = logging.getLogger(__name__)


class ModelParameterRepository(BaseRepository):
    """Read/write access to ``model_parameters``."""

    def get(self, commodity_id: str) -> Optional[ModelParameters]:
        row = self.fetchone(
            "SELECT * FROM model_parameters WHERE commodity_id = ?;", (commodity_id,)
        )
        return _row_to_params(row) if row else None

    def compare_and_swap(
        self,
        commodity_id: str,
        params: ModelParameters,
        expected_version: int,
    ) -> ModelParameters:
        """Replace the stored row iff its version equals ``expected_version``.

        Returns:
            The stored parameters with ``version = expected_version + 1``.

        Raises:
            ConcurrentUpdateConflict: On a version mismatch.
        """
        new_version = expected_version + 1
        values = (
            params.trend_sensitivity,
            params.seasonal_weight,
            params.market_factor,
            params.confidence,
            params.variance_tolerance,
            new_version,
            params.outcomes_applied,
        )

        if expected_version == 0:
            cur = self.execute(
                """
                INSERT OR IGNORE INTO model_parameters (
                    trend_sensitivity, seasonal_weight, market_factor,
                    confidence, variance_tolerance, version, outcomes_applied,
                    commodity_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                """,
                values + (commodity_id,),
            )
        else:
            cur = self.execute(
                """
                UPDATE model_parameters SET
                    trend_sensitivity  = ?,
                    seasonal_weight    = ?,
                    market_factor      = ?,
                    confidence         = ?,
                    variance_tolerance = ?,
                    version            = ?,
                    outcomes_applied   = ?,
                    updated_at         = strftime('%Y-%m-%dT%H:%M:%SZ', 'now')
                WHERE commodity_id = ? AND version = ?;
                """,
                values + (commodity_id, expected_version),
            )

        if cur.rowcount != 1:
            current = self.get(commodity_id)
            raise ConcurrentUpdateConflict(
                commodity_id, expected_version, current.version if current else None
            )
        return params.model_copy(update={"version": new_version})


# ── Private helpers ────────────────────────────────────────────────────────────

def _row_to_params(row: sqlite3.Row) -> ModelParameters:
    return ModelParameters(
        trend_sensitivity=row["trend_sensitivity"],
        seasonal_weight=row["seasonal_weight"],
        market_factor=row["market_factor"],
        confidence=row["confidence"],
        variance_tolerance=row["variance_tolerance"],
        version=row["version"],
        outcomes_applied=row["outcomes_applied"],
    )
