"""
Shared pytest fixtures for the demand forecaster test suite.

Provides:
  - ``in_memory_db``: A fresh in-memory SQLite connection with the full
    schema applied. Created anew for each test that requests it.
  - ``seeded_rng``: ``random.Random(42)`` for reproducible jitter.
  - In-memory collaborator stores and a ``ForecastEngine`` wired to them.
  - ``make_monthly_transactions``: factory turning a list of monthly
    quantities into ``TransactionRecord`` rows.
  - ``rising_december_history``: 24 months rising 100 → 300 with a +20%
    December bump, ending October 2026.
"""

from __future__ import annotations

import random
import sqlite3
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Generator

import pytest

from demand_forecaster.config import AppConfig
from demand_forecaster.db.schema import apply_schema
from demand_forecaster.forecasting.engine import ForecastEngine
from demand_forecaster.models.history import TransactionRecord
from demand_forecaster.stores.memory import (
    InMemoryHistoricalDataSource,
    InMemoryOutcomeStore,
    InMemoryParameterStore,
)
from demand_forecaster.utils.time_utils import add_months

# Forecasts in the end-to-end scenario are made in November 2026.
NOVEMBER_CLOCK = datetime(2026, 11, 10, 9, 0, 0, tzinfo=timezone.utc)


class ConstantRandom:
    """Jitter source that always returns the same draw."""

    def __init__(self, value: float = 0.0) -> None:
        self.value = value

    def uniform(self, a: float, b: float) -> float:
        return self.value


def monthly_transactions(
    commodity_id: str,
    quantities: Sequence[float],
    start_year: int,
    start_month: int,
    unit_price: float = 10.0,
) -> list[TransactionRecord]:
    """One transaction per month on the 15th, starting at ``start_year-start_month``."""
    records: list[TransactionRecord] = []
    for offset, qty in enumerate(quantities):
        year, month = add_months(start_year, start_month, offset)
        records.append(
            TransactionRecord(
                commodity_id=commodity_id,
                timestamp=datetime(year, month, 15, 12, 0, 0, tzinfo=timezone.utc),
                quantity=qty,
                unit_price=unit_price,
            )
        )
    return records


def rising_with_december_bump(n_months: int = 24, start_month: int = 11) -> list[float]:
    """Linear 100 → 300 over ``n_months``, December months multiplied by 1.2."""
    quantities: list[float] = []
    for i in range(n_months):
        qty = 100.0 + 200.0 * i / (n_months - 1)
        _, month = add_months(2000, start_month, i)
        if month == 12:
            qty *= 1.2
        quantities.append(qty)
    return quantities


# ── Database fixture ──────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the full schema applied.

    Foreign key enforcement is ON. Connection is closed after the test.
    """
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    apply_schema(conn)
    yield conn
    conn.close()


# ── Randomness ────────────────────────────────────────────────────────────────

@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def zero_jitter() -> ConstantRandom:
    """Jitter source whose draws are always 0, so predictions equal the base."""
    return ConstantRandom(0.0)


# ── Collaborators ─────────────────────────────────────────────────────────────

@pytest.fixture
def history_source() -> InMemoryHistoricalDataSource:
    return InMemoryHistoricalDataSource()


@pytest.fixture
def outcome_store() -> InMemoryOutcomeStore:
    return InMemoryOutcomeStore()


@pytest.fixture
def parameter_store() -> InMemoryParameterStore:
    return InMemoryParameterStore()


@pytest.fixture
def app_config() -> AppConfig:
    """Defaults, with nothing read from disk or the environment."""
    return AppConfig()


@pytest.fixture
def engine(
    history_source: InMemoryHistoricalDataSource,
    outcome_store: InMemoryOutcomeStore,
    parameter_store: InMemoryParameterStore,
    app_config: AppConfig,
    seeded_rng: random.Random,
) -> ForecastEngine:
    """A ``ForecastEngine`` over empty in-memory stores, clock fixed in November 2026."""
    return ForecastEngine(
        history_source,
        outcome_store,
        parameter_store,
        config=app_config,
        rng=seeded_rng,
        clock=lambda: NOVEMBER_CLOCK,
    )


# ── History factories ─────────────────────────────────────────────────────────

@pytest.fixture
def make_monthly_transactions() -> Callable[..., list[TransactionRecord]]:
    return monthly_transactions


@pytest.fixture
def rising_december_history() -> list[TransactionRecord]:
    """November 2024 → October 2026, rising 100 → 300, Decembers +20%."""
    return monthly_transactions("coal", rising_with_december_bump(), 2024, 11)
