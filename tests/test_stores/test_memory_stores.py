"""Tests for the in-memory collaborator implementations."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from demand_forecaster.exceptions import (
    ConcurrentUpdateConflict,
    PredictionAlreadyResolved,
    PredictionNotFound,
)
from demand_forecaster.models.history import MarketPricePoint, SentimentSignal
from demand_forecaster.models.learning import ModelParameters, ParameterUpdate, PredictionRecord
from demand_forecaster.stores.protocols import (
    HistoricalDataSource,
    OutcomeStore,
    ParameterStore,
)

_T0 = datetime(2026, 6, 1, tzinfo=timezone.utc)


class TestProtocolConformance:
    def test_memory_stores_satisfy_protocols(self, history_source, outcome_store, parameter_store):
        assert isinstance(history_source, HistoricalDataSource)
        assert isinstance(outcome_store, OutcomeStore)
        assert isinstance(parameter_store, ParameterStore)


class TestHistoricalDataSource:
    def test_transactions_filtered_and_sorted(self, history_source, make_monthly_transactions):
        records = make_monthly_transactions("coal", [1.0, 2.0, 3.0, 4.0], 2026, 1)
        history_source.add_transactions(reversed(records))
        history_source.add_transactions(make_monthly_transactions("nickel", [9.0], 2026, 3))

        fetched = history_source.fetch_transactions("coal", datetime(2026, 2, 1, tzinfo=timezone.utc))
        assert [r.quantity for r in fetched] == [2.0, 3.0, 4.0]

    def test_unknown_commodity_is_empty(self, history_source):
        assert history_source.fetch_transactions("nothing", _T0) == []

    def test_prices_newest_first_and_limited(self, history_source):
        prices = [MarketPricePoint(timestamp=_T0 + timedelta(days=i), price=float(i)) for i in range(10)]
        history_source.add_market_prices("coal", prices)

        fetched = history_source.fetch_market_prices("coal", _T0 + timedelta(days=2), limit=3)
        assert [p.price for p in fetched] == [9.0, 8.0, 7.0]

    def test_prices_since_filter(self, history_source):
        prices = [MarketPricePoint(timestamp=_T0 + timedelta(days=i), price=1.0) for i in range(5)]
        history_source.add_market_prices("coal", prices)
        assert len(history_source.fetch_market_prices("coal", _T0 + timedelta(days=3), 100)) == 2

    def test_sentiment_includes_undated(self, history_source):
        history_source.add_sentiment_signals("coal", [
            SentimentSignal(sentiment="positive", timestamp=_T0 - timedelta(days=400)),
            SentimentSignal(sentiment="negative", timestamp=_T0),
            SentimentSignal(sentiment="neutral"),
        ])
        fetched = history_source.fetch_sentiment_signals("coal", _T0 - timedelta(days=30), 10)
        assert [s.sentiment for s in fetched] == ["neutral", "negative"]

    def test_import_history_counts_every_kind(self, history_source, make_monthly_transactions):
        added = history_source.import_history(
            transactions=make_monthly_transactions("coal", [1.0, 2.0], 2026, 4),
            prices={"coal": [MarketPricePoint(timestamp=_T0, price=10.0)]},
            signals={"nickel": [SentimentSignal(sentiment="positive")]},
        )
        assert added == 4
        assert len(history_source.fetch_market_prices("coal", _T0, 10)) == 1
        assert history_source.fetch_sentiment_signals("nickel", _T0, 10)[0].sentiment == "positive"


class TestOutcomeStore:
    def _record(self, **overrides) -> PredictionRecord:
        fields = dict(
            commodity_id="coal", predicted_value=150.0, period_label="2026-07",
            confidence=0.65, created_at=_T0,
        )
        fields.update(overrides)
        return PredictionRecord(**fields)

    def test_append_generates_unique_ids(self, outcome_store):
        ids = {outcome_store.append_prediction(self._record()) for _ in range(5)}
        assert len(ids) == 5

    def test_append_keeps_given_id(self, outcome_store):
        assert outcome_store.append_prediction(self._record(id="fixed")) == "fixed"
        assert outcome_store.get_prediction("fixed").id == "fixed"

    def test_resolve(self, outcome_store):
        pid = outcome_store.append_prediction(self._record())
        assert outcome_store.resolve_prediction(pid, 100.0) == pytest.approx(50.0)
        assert outcome_store.count_resolved("coal") == 1

    def test_resolve_twice(self, outcome_store):
        pid = outcome_store.append_prediction(self._record())
        outcome_store.resolve_prediction(pid, 100.0)
        with pytest.raises(PredictionAlreadyResolved):
            outcome_store.resolve_prediction(pid, 100.0)

    def test_unknown_id(self, outcome_store):
        with pytest.raises(PredictionNotFound):
            outcome_store.get_prediction("nope")
        with pytest.raises(PredictionNotFound):
            outcome_store.resolve_prediction("nope", 1.0)

    def test_query_resolved_excludes_pending_and_other_commodities(self, outcome_store):
        done = outcome_store.append_prediction(self._record())
        outcome_store.append_prediction(self._record())
        other = outcome_store.append_prediction(self._record(commodity_id="nickel"))
        outcome_store.resolve_prediction(done, 150.0)
        outcome_store.resolve_prediction(other, 150.0)

        resolved = outcome_store.query_resolved("coal", limit=10)
        assert [r.id for r in resolved] == [done]

    def test_query_resolved_limit(self, outcome_store):
        for _ in range(5):
            pid = outcome_store.append_prediction(self._record())
            outcome_store.resolve_prediction(pid, 150.0)
        assert len(outcome_store.query_resolved("coal", limit=3)) == 3
        assert outcome_store.count_resolved("coal") == 5

    def test_append_many_in_order(self, outcome_store):
        records = [self._record(period_label=f"2026-0{m}") for m in (7, 8, 9)]
        ids = outcome_store.append_predictions(records)
        assert [outcome_store.get_prediction(pid).period_label for pid in ids] == [
            "2026-07", "2026-08", "2026-09",
        ]


class TestParameterStore:
    def test_empty(self, parameter_store):
        assert parameter_store.get("coal") is None
        assert parameter_store.history("coal", limit=10) == []

    def test_first_write_and_update(self, parameter_store):
        v1 = parameter_store.compare_and_swap("coal", ModelParameters(confidence=0.8), 0)
        assert v1.version == 1
        v2 = parameter_store.compare_and_swap("coal", v1.model_copy(update={"confidence": 0.85}), 1)
        assert v2.version == 2
        assert parameter_store.get("coal").confidence == 0.85

    def test_stale_version_rejected(self, parameter_store):
        parameter_store.compare_and_swap("coal", ModelParameters(), 0)
        with pytest.raises(ConcurrentUpdateConflict) as exc_info:
            parameter_store.compare_and_swap("coal", ModelParameters(confidence=0.9), 0)
        assert exc_info.value.actual_version == 1
        assert parameter_store.get("coal").confidence == 0.7

    def test_only_one_concurrent_writer_wins(self, parameter_store):
        outcomes: list[str] = []
        barrier = threading.Barrier(8)

        def writer(conf: float) -> None:
            barrier.wait()
            try:
                parameter_store.compare_and_swap("coal", ModelParameters(confidence=conf), 0)
                outcomes.append("ok")
            except ConcurrentUpdateConflict:
                outcomes.append("conflict")

        threads = [threading.Thread(target=writer, args=(0.5 + i * 0.05,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("conflict") == 7
        assert parameter_store.get("coal").version == 1

    def test_history_follows_committed_versions(self, parameter_store):
        update = ParameterUpdate(
            commodity_id="coal",
            previous=ModelParameters().tuning_values(),
            updated=ModelParameters(confidence=0.75).tuning_values(),
            overall_accuracy=90.0,
            outcomes_applied=10,
            created_at=_T0,
        )
        v1 = parameter_store.compare_and_swap("coal", ModelParameters(confidence=0.75), 0, update)
        with pytest.raises(ConcurrentUpdateConflict):
            parameter_store.compare_and_swap("coal", ModelParameters(), 0, update)
        parameter_store.compare_and_swap("coal", v1, 1)

        history = parameter_store.history("coal", limit=10)
        assert [u.version for u in history] == [1]
        assert history[0].changes() == {"confidence": pytest.approx(0.05)}
