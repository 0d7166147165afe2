"""
CSV import parsers for historical inputs.

Three comma-delimited formats, each with a header row:

Transactions (``kind = transactions``)
  Required: commodity_id, timestamp, quantity, unit_price

Market prices (``kind = prices``)
  Required: commodity_id, timestamp, price

Sentiment readings (``kind = sentiment``)
  Required: commodity_id
  Optional: sentiment (default "neutral"), growth_forecast (default "stable"),
            timestamp

Timestamp formats:
  YYYY-MM-DD                 → midnight UTC
  ISO 8601 (Z or +hh:mm)     → converted to UTC; naive values are read as UTC

All rows are validated before any are returned.  If any row fails, a single
``ValueError`` lists the first 10 failures.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import ValidationError

from demand_forecaster.models.history import (
    VALID_GROWTH_FORECASTS,
    VALID_SENTIMENTS,
    MarketPricePoint,
    SentimentSignal,
    TransactionRecord,
)
from demand_forecaster.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSACTION_COLUMNS = frozenset({"commodity_id", "timestamp", "quantity", "unit_price"})
PRICE_COLUMNS       = frozenset({"commodity_id", "timestamp", "price"})
SENTIMENT_COLUMNS   = frozenset({"commodity_id"})

MAX_ERRORS_SHOWN = 10


def parse_transaction_csv(path: Path) -> list[TransactionRecord]:
    """Parse a transactions CSV into validated records.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If required columns are missing or any row fails validation.
    """
    return _parse_rows(path, TRANSACTION_COLUMNS, _row_to_transaction)


def parse_market_price_csv(path: Path) -> dict[str, list[MarketPricePoint]]:
    """Parse a market price CSV, grouped by commodity id."""
    pairs = _parse_rows(path, PRICE_COLUMNS, _row_to_price)
    grouped: dict[str, list[MarketPricePoint]] = {}
    for commodity_id, point in pairs:
        grouped.setdefault(commodity_id, []).append(point)
    return grouped


def parse_sentiment_csv(path: Path) -> dict[str, list[SentimentSignal]]:
    """Parse a sentiment CSV, grouped by commodity id."""
    pairs = _parse_rows(path, SENTIMENT_COLUMNS, _row_to_signal)
    grouped: dict[str, list[SentimentSignal]] = {}
    for commodity_id, signal in pairs:
        grouped.setdefault(commodity_id, []).append(signal)
    return grouped


# ── Private helpers ────────────────────────────────────────────────────────────

def _parse_rows(
    path: Path,
    required: frozenset[str],
    convert: Callable[[dict[str, str]], T],
) -> list[T]:
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    with open(path, encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)

        if reader.fieldnames is None:
            raise ValueError(f"CSV file is empty or has no header row: {path}")

        actual_cols = {c.strip() for c in reader.fieldnames}
        missing = required - actual_cols
        if missing:
            raise ValueError(
                f"CSV missing required columns: {sorted(missing)}\n"
                f"Found columns: {sorted(actual_cols)}"
            )

        rows = [{(k or "").strip(): (v or "") for k, v in row.items()} for row in reader]

    if not rows:
        logger.warning("CSV is empty (header only): %s", path)
        return []

    parsed: list[T] = []
    errors: list[tuple[int, str]] = []

    for i, row in enumerate(rows):
        line_no = i + 2  # 1-based, skip header row
        try:
            parsed.append(convert(row))
        except (ValueError, ValidationError) as exc:
            errors.append((line_no, str(exc)))

    if errors:
        detail = "\n".join(f"  Row {ln}: {msg}" for ln, msg in errors[:MAX_ERRORS_SHOWN])
        suffix = (
            f"\n  … and {len(errors) - MAX_ERRORS_SHOWN} more"
            if len(errors) > MAX_ERRORS_SHOWN
            else ""
        )
        raise ValueError(
            f"{len(errors)} row(s) failed validation in {path.name}:\n{detail}{suffix}"
        )

    logger.info("Parsed %d rows from %s", len(parsed), path.name)
    return parsed


def _row_to_transaction(row: dict[str, str]) -> TransactionRecord:
    return TransactionRecord(
        commodity_id=_req(row, "commodity_id"),
        timestamp=_parse_timestamp(row, "timestamp", required=True),
        quantity=_parse_float(row, "quantity"),
        unit_price=_parse_float(row, "unit_price"),
    )


def _row_to_price(row: dict[str, str]) -> tuple[str, MarketPricePoint]:
    return _req(row, "commodity_id"), MarketPricePoint(
        timestamp=_parse_timestamp(row, "timestamp", required=True),
        price=_parse_float(row, "price"),
    )


def _row_to_signal(row: dict[str, str]) -> tuple[str, SentimentSignal]:
    sentiment = _opt(row, "sentiment") or "neutral"
    growth = _opt(row, "growth_forecast") or "stable"
    if sentiment not in VALID_SENTIMENTS:
        raise ValueError(
            f"Invalid sentiment value '{sentiment}'. Valid values: {sorted(VALID_SENTIMENTS)}"
        )
    if growth not in VALID_GROWTH_FORECASTS:
        raise ValueError(
            f"Invalid growth_forecast value '{growth}'. "
            f"Valid values: {sorted(VALID_GROWTH_FORECASTS)}"
        )
    return _req(row, "commodity_id"), SentimentSignal(
        sentiment=sentiment,
        growth_forecast=growth,
        timestamp=_parse_timestamp(row, "timestamp"),
    )


def _req(row: dict[str, str], key: str) -> str:
    """Return a required string field, stripped; raise if empty."""
    v = row.get(key, "").strip()
    if not v:
        raise ValueError(f"Required field '{key}' is empty.")
    return v


def _opt(row: dict[str, str], key: str) -> Optional[str]:
    """Return an optional string field, or None if absent/empty."""
    v = row.get(key, "").strip()
    return v if v else None


def _parse_float(row: dict[str, str], key: str) -> float:
    v = _req(row, key)
    try:
        return float(v)
    except ValueError:
        raise ValueError(f"Invalid number for '{key}': '{v}'.")


def _parse_timestamp(
    row: dict[str, str],
    key: str,
    required: bool = False,
) -> Optional[datetime]:
    """Parse a date or ISO 8601 datetime into an aware UTC datetime."""
    v = _opt(row, key)
    if v is None:
        if required:
            raise ValueError(f"Required timestamp field '{key}' is empty.")
        return None
    try:
        if len(v) == 10:
            d = date.fromisoformat(v)
            return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
        return ensure_utc(datetime.fromisoformat(v.replace("Z", "+00:00")))
    except ValueError:
        raise ValueError(
            f"Invalid timestamp for '{key}': '{v}'. "
            "Expected YYYY-MM-DD or ISO 8601, e.g. '2025-11-03T18:00:00Z'."
        )
