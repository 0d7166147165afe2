"""
SQLite connection management.

``get_connection()`` is a context manager that:
  - Turns on foreign key enforcement (off by default in SQLite).
  - Optionally switches to WAL so forecast reads do not block on learning writes.
  - Sets a busy timeout so a locked database waits instead of failing at once.
  - Uses the ``sqlite3.Row`` factory for name-based column access.
  - Commits on clean exit and rolls back on any exception.

Usage::

    from demand_forecaster.db.connection import get_connection

    with get_connection("data/db/demand_forecaster.db") as conn:
        TransactionRepository(conn).insert_many(records)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

logger = logging.getLogger(__name__)


@contextmanager
def get_connection(
    db_path: str,
    wal_mode: bool = True,
    busy_timeout_ms: int = 5000,
) -> Generator[sqlite3.Connection, None, None]:
    """Yield a configured SQLite connection inside a transaction.

    Parent directories of ``db_path`` are created if missing.

    Args:
        db_path: Database file, or ``":memory:"``.
        wal_mode: Enable WAL journal mode.
        busy_timeout_ms: How long to wait on a locked database.

    Yields:
        An open ``sqlite3.Connection``.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened or stays locked.
    """
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000)
    conn.row_factory = sqlite3.Row

    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)};")
        if wal_mode and db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL;")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        conn.close()
