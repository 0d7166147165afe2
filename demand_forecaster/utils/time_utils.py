"""
Calendar-month utilities for period-keyed forecasting.

Key concepts:
  - Period key: the ``"YYYY-MM"`` string identifying one calendar month (UTC).
  - Month arithmetic: shifting a date forward/backward by whole months without
    pulling in ``dateutil``.
  - Forecast period generation: produce the target period keys for a horizon.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime.

    Naive datetimes are assumed to already be UTC.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def period_key(ts: datetime | date) -> str:
    """Return the ``"YYYY-MM"`` period key for a timestamp or date.

    Datetimes are converted to UTC before the month is taken, so a record
    stamped ``2024-01-31T23:30:00-05:00`` lands in ``"2024-02"``.
    """
    if isinstance(ts, datetime):
        ts = ensure_utc(ts)
    return f"{ts.year:04d}-{ts.month:02d}"


def parse_period_key(key: str) -> tuple[int, int]:
    """Split a ``"YYYY-MM"`` key into ``(year, month)``.

    Raises:
        ValueError: If the key is malformed or the month is out of range.
    """
    try:
        year_s, month_s = key.split("-")
        year, month = int(year_s), int(month_s)
    except ValueError:
        raise ValueError(f"Invalid period key '{key}'. Expected YYYY-MM.")
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month in period key '{key}'.")
    return year, month


def add_months(year: int, month: int, offset: int) -> tuple[int, int]:
    """Shift a ``(year, month)`` pair by ``offset`` months (may be negative)."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def months_before(ts: datetime, months: int) -> datetime:
    """Return the start (UTC midnight, day 1) of the month ``months`` before ``ts``."""
    ts = ensure_utc(ts)
    year, month = add_months(ts.year, ts.month, -months)
    return datetime(year, month, 1, tzinfo=timezone.utc)


def days_before(ts: datetime, days: int) -> datetime:
    """Return ``ts`` minus ``days`` whole days, in UTC."""
    return ensure_utc(ts) - timedelta(days=days)


def forecast_periods(as_of: datetime, horizon_months: int) -> list[str]:
    """Period keys for months ``1..horizon_months`` after ``as_of``.

    Args:
        as_of: Reference timestamp (T+0).
        horizon_months: Number of future months.

    Returns:
        List of ``"YYYY-MM"`` keys, nearest month first.
    """
    as_of = ensure_utc(as_of)
    keys: list[str] = []
    for offset in range(1, horizon_months + 1):
        year, month = add_months(as_of.year, as_of.month, offset)
        keys.append(f"{year:04d}-{month:02d}")
    return keys


def to_iso_utc(ts: datetime) -> str:
    """Fixed-width UTC ISO string (``...T..:..:..ffffffZ``) that sorts lexically."""
    return ensure_utc(ts).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def from_iso_utc(value: str) -> datetime:
    """Parse an ISO string written by ``to_iso_utc`` (or any ISO 8601 form)."""
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
