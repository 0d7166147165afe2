"""
SQLite schema DDL for the demand forecaster's collaborator stores.

Every statement uses ``IF NOT EXISTS`` so ``apply_schema()`` is idempotent.

Tables:
  1. transactions        historical transaction lines (Historical Data Source)
  2. market_prices       external price observations  (Historical Data Source)
  3. sentiment_signals   sentiment / growth readings  (Historical Data Source)
  4. prediction_records  predictions and their outcomes (Outcome Store)
  5. model_parameters    one versioned row per commodity (Parameter Store)
  6. parameter_updates   audit trail of committed learning updates (Parameter Store)

Timestamps are fixed-width UTC ISO strings (``to_iso_utc``) so range filters
and ``ORDER BY`` work lexically.
"""

from __future__ import annotations

import logging
import sqlite3

logger = logging.getLogger(__name__)

# ── DDL statements ─────────────────────────────────────────────────────────────

_DDL_TRANSACTIONS = """
CREATE TABLE IF NOT EXISTS transactions (
    txn_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    commodity_id    TEXT    NOT NULL,
    occurred_at     TEXT    NOT NULL,
    quantity        REAL    NOT NULL CHECK (quantity >= 0),
    unit_price      REAL    NOT NULL CHECK (unit_price >= 0),
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_MARKET_PRICES = """
CREATE TABLE IF NOT EXISTS market_prices (
    price_id        INTEGER PRIMARY KEY AUTOINCREMENT,
    commodity_id    TEXT    NOT NULL,
    observed_at     TEXT    NOT NULL,
    price           REAL    NOT NULL,
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_SENTIMENT_SIGNALS = """
CREATE TABLE IF NOT EXISTS sentiment_signals (
    signal_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    commodity_id    TEXT    NOT NULL,
    published_at    TEXT    NOT NULL,
    sentiment       TEXT    NOT NULL DEFAULT 'neutral'
                    CHECK (sentiment IN ('positive', 'negative', 'neutral')),
    growth_forecast TEXT    NOT NULL DEFAULT 'stable'
                    CHECK (growth_forecast IN ('increasing', 'decreasing', 'stable')),
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_PREDICTION_RECORDS = """
CREATE TABLE IF NOT EXISTS prediction_records (
    prediction_id       TEXT    PRIMARY KEY,
    commodity_id        TEXT    NOT NULL,
    predicted_value     REAL    NOT NULL,
    period_label        TEXT    NOT NULL,
    months_ahead        INTEGER NOT NULL DEFAULT 1 CHECK (months_ahead >= 1),
    factors_used        TEXT    NOT NULL DEFAULT '[]',
    confidence          REAL    NOT NULL,
    model_version       TEXT    NOT NULL,
    created_at          TEXT    NOT NULL,
    actual_value        REAL,
    accuracy_percentage REAL,
    outcome_date        TEXT
);
"""

_DDL_MODEL_PARAMETERS = """
CREATE TABLE IF NOT EXISTS model_parameters (
    commodity_id        TEXT    PRIMARY KEY,
    trend_sensitivity   REAL    NOT NULL,
    seasonal_weight     REAL    NOT NULL,
    market_factor       REAL    NOT NULL,
    confidence          REAL    NOT NULL CHECK (confidence BETWEEN 0 AND 1),
    variance_tolerance  REAL    NOT NULL CHECK (variance_tolerance BETWEEN 0 AND 1),
    version             INTEGER NOT NULL CHECK (version >= 1),
    outcomes_applied    INTEGER NOT NULL DEFAULT 0,
    updated_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
"""

_DDL_PARAMETER_UPDATES = """
CREATE TABLE IF NOT EXISTS parameter_updates (
    update_id           INTEGER PRIMARY KEY AUTOINCREMENT,
    commodity_id        TEXT    NOT NULL,
    version             INTEGER NOT NULL CHECK (version >= 1),
    previous_values     TEXT    NOT NULL,
    updated_values      TEXT    NOT NULL,
    overall_accuracy    REAL    NOT NULL,
    improving_factors   TEXT    NOT NULL DEFAULT '[]',
    declining_factors   TEXT    NOT NULL DEFAULT '[]',
    outcomes_applied    INTEGER NOT NULL,
    created_at          TEXT    NOT NULL,
    UNIQUE (commodity_id, version)
);
"""

_DDL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_txn_commodity_time ON transactions(commodity_id, occurred_at);",
    "CREATE INDEX IF NOT EXISTS idx_price_commodity_time ON market_prices(commodity_id, observed_at);",
    "CREATE INDEX IF NOT EXISTS idx_signal_commodity_time ON sentiment_signals(commodity_id, published_at);",
    "CREATE INDEX IF NOT EXISTS idx_pred_commodity_outcome ON prediction_records(commodity_id, outcome_date);",
]

_ALL_DDL = [
    _DDL_TRANSACTIONS,
    _DDL_MARKET_PRICES,
    _DDL_SENTIMENT_SIGNALS,
    _DDL_PREDICTION_RECORDS,
    _DDL_MODEL_PARAMETERS,
    _DDL_PARAMETER_UPDATES,
]

ALL_TABLE_NAMES: list[str] = [
    "transactions",
    "market_prices",
    "sentiment_signals",
    "prediction_records",
    "model_parameters",
    "parameter_updates",
]


def apply_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes that do not exist yet.

    Args:
        conn: Open connection; committed before returning.
    """
    for ddl in _ALL_DDL:
        conn.execute(ddl)
    for idx in _DDL_INDEXES:
        conn.execute(idx)
    conn.commit()
    logger.debug("Schema applied (%d tables).", len(ALL_TABLE_NAMES))


def get_existing_tables(conn: sqlite3.Connection) -> list[str]:
    """Table names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]


def get_existing_indexes(conn: sqlite3.Connection) -> list[str]:
    """Index names present in the database, sorted."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' ORDER BY name;"
    ).fetchall()
    return [row["name"] for row in rows]
