"""
Input records read from the Historical Data Source.

``TransactionRecord`` is one sale/offtake line for a commodity.
``MarketPricePoint`` is one external price observation.
``SentimentSignal`` is one qualitative market-intelligence reading.

All three are frozen: the data source owns them and the engine only reads.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

Sentiment = Literal["positive", "negative", "neutral"]
GrowthForecast = Literal["increasing", "decreasing", "stable"]

VALID_SENTIMENTS: frozenset[str] = frozenset({"positive", "negative", "neutral"})
VALID_GROWTH_FORECASTS: frozenset[str] = frozenset({"increasing", "decreasing", "stable"})


class TransactionRecord(BaseModel):
    """A single historical transaction.

    Attributes:
        commodity_id: Commodity identifier, e.g. ``"coal"``.
        timestamp: When the transaction happened. Naive values are read as UTC.
        quantity: Units moved; non-negative.
        unit_price: Price per unit; non-negative.
    """

    model_config = ConfigDict(frozen=True)

    commodity_id: str
    timestamp: datetime
    quantity: float
    unit_price: float

    @field_validator("quantity", "unit_price")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"must be non-negative, got {v}.")
        return v

    @field_validator("commodity_id")
    @classmethod
    def validate_commodity(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("commodity_id must not be empty.")
        return v.strip()


class MarketPricePoint(BaseModel):
    """One external market price observation for a commodity."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    price: float


class SentimentSignal(BaseModel):
    """A qualitative sentiment / growth-outlook reading.

    Attributes:
        sentiment: ``"positive"``, ``"negative"`` or ``"neutral"``.
        growth_forecast: ``"increasing"``, ``"decreasing"`` or ``"stable"``.
        timestamp: When the signal was published, if known.
    """

    model_config = ConfigDict(frozen=True)

    sentiment: Sentiment = "neutral"
    growth_forecast: GrowthForecast = "stable"
    timestamp: datetime | None = None
