"""Tests for tickchart.session – ChartSession wiring."""

import logging

import pytest

from conftest import MINUTE_MS, make_event
from tickchart.feed import FeedEvent, ReplayFeed
from tickchart.marketdata import (
    Candle,
    CandleClosedEvent,
    HistoryClearedEvent,
    InstrumentSelectedEvent,
    TickReceivedEvent,
)
from tickchart.session import ChartSession, ChartStatus
from tickchart.storage import storage_key


STORED = [
    {"time": 0, "open": 10, "high": 12, "low": 9, "close": 11},
    {"time": 60, "open": 11, "high": 11, "low": 10, "close": 10.5},
]


@pytest.fixture
def session(store, sink, dispatcher):
    return ChartSession(store=store, sink=sink, interval_ms=MINUTE_MS, dispatcher=dispatcher)


def _record(dispatcher, *event_types):
    seen = []
    for t in event_types:
        dispatcher.subscribe(t, seen.append)
    return seen


class TestSelectInstrument:

    def test_initial_status(self, session):
        assert session.status is ChartStatus.NO_INSTRUMENT
        assert session.instrument is None
        assert session.stats().live_candles == 0

    @pytest.mark.asyncio
    async def test_loads_stored_series(self, session, store, sink, dispatcher):
        store.set(storage_key("HBL"), STORED)
        seen = _record(dispatcher, InstrumentSelectedEvent)

        series = await session.select_instrument("hbl")

        assert session.instrument == "HBL"
        assert session.status is ChartStatus.WAITING
        assert len(series) == 2
        assert [c.bucket_start for c in sink.latest] == [0, 60]
        assert seen[0].instrument == "HBL"
        assert seen[0].loaded == 2

    @pytest.mark.asyncio
    async def test_storage_read_failure_falls_back_to_empty(self, session, store, caplog):
        store.set(storage_key("HBL"), STORED)
        store.fail_reads = True

        with caplog.at_level(logging.ERROR):
            series = await session.select_instrument("HBL")

        assert len(series) == 0
        assert session.status is ChartStatus.WAITING
        assert "Failed to load candles for HBL" in caplog.text

    @pytest.mark.asyncio
    async def test_non_list_stored_value_falls_back_to_empty(self, session, store):
        store._data[storage_key("HBL")] = {"oops": 1}
        series = await session.select_instrument("HBL")
        assert len(series) == 0

    @pytest.mark.asyncio
    async def test_empty_symbol_rejected(self, session):
        with pytest.raises(ValueError):
            await session.select_instrument("  ")


class TestHandleEvent:

    @pytest.mark.asyncio
    async def test_drops_events_before_selection(self, session, sink):
        assert await session.handle_event(make_event(0, 1, 1, 1, 1)) is None
        assert sink.redraws == 0

    @pytest.mark.asyncio
    async def test_concrete_scenario_persists_once_per_close(self, session, store, sink):
        await session.select_instrument("HBL")

        await session.handle_event(make_event(1_000, 10, 11, 9, 10))
        await session.handle_event(make_event(30_000, 10, 12, 9, 11))
        assert store.writes == 0
        assert session.status is ChartStatus.CONNECTED

        result = await session.handle_event(make_event(61_000, 11, 11, 10, 10.5))

        assert result.closed == Candle(bucket_start=0, open=10, high=12, low=9, close=11)
        assert store.writes == 1
        assert store.get(storage_key("HBL")) == [
            {"time": 0, "open": 10.0, "high": 12.0, "low": 9.0, "close": 11.0}
        ]
        assert sink.rows() == [
            {"time": 0, "open": 10.0, "high": 12.0, "low": 9.0, "close": 11.0},
            {"time": 60, "open": 11.0, "high": 11.0, "low": 10.0, "close": 10.5},
        ]

    @pytest.mark.asyncio
    async def test_sink_gets_full_snapshot_on_every_tick(self, session, sink):
        await session.select_instrument("HBL")
        redraws = sink.redraws

        for i in range(3):
            await session.handle_event(make_event(i * 1_000, 1, 2, 0.5, 1 + i))

        assert sink.redraws == redraws + 3
        assert len(sink.latest) == 1
        assert sink.last_candle.close == 3

    @pytest.mark.asyncio
    async def test_missing_timestamp_uses_received_time(self, session, sink):
        await session.select_instrument("HBL")
        await session.handle_event(make_event(None, 1, 1, 1, 1), received_ms=125_000)
        assert sink.last_candle.bucket_start == 120

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_ts", [float("nan"), float("inf"), "--5", "\u00b2"])
    async def test_unusable_timestamp_falls_back_to_received_time(self, session, sink, bad_ts):
        await session.select_instrument("HBL")

        result = await session.handle_event(make_event(bad_ts, 1, 1, 1, 1), received_ms=61_000)

        assert result.current.bucket_start == 60
        assert sink.last_candle.bucket_start == 60

    @pytest.mark.asyncio
    async def test_malformed_event_is_ignored(self, session, sink, caplog):
        await session.select_instrument("HBL")
        await session.handle_event(make_event(0, 1, 1, 1, 1))

        with caplog.at_level(logging.WARNING):
            assert await session.handle_event({"no": "tick"}) is None

        assert "Ignoring malformed tick" in caplog.text
        assert sink.last_candle.close == 1

    @pytest.mark.asyncio
    async def test_tick_without_prices_is_ignored(self, session, dispatcher):
        await session.select_instrument("HBL")
        seen = _record(dispatcher, TickReceivedEvent)

        result = await session.handle_event({"timestamp": 0, "tick": {}})

        assert result.ignored
        assert seen == []
        assert session.status is ChartStatus.WAITING

    @pytest.mark.asyncio
    async def test_write_failure_keeps_in_memory_state(self, session, store, caplog):
        await session.select_instrument("HBL")
        store.fail_writes = True

        await session.handle_event(make_event(0, 1, 1, 1, 1))
        with caplog.at_level(logging.ERROR):
            result = await session.handle_event(make_event(MINUTE_MS, 2, 2, 2, 2))

        assert result.closed is not None
        assert session.stats().live_candles == 1
        assert "Failed to save candles for HBL" in caplog.text

    @pytest.mark.asyncio
    async def test_publishes_tick_and_close_events(self, session, dispatcher):
        await session.select_instrument("HBL")
        ticks = _record(dispatcher, TickReceivedEvent)
        closes = _record(dispatcher, CandleClosedEvent)

        await session.handle_event(make_event(0, 1, 1, 1, 1))
        await session.handle_event(make_event(MINUTE_MS, 2, 2, 2, 2))

        assert len(ticks) == 2
        assert len(closes) == 1
        assert closes[0].instrument == "HBL"
        assert closes[0].interval_ms == MINUTE_MS
        assert closes[0].candle.bucket_start == 0

    @pytest.mark.asyncio
    async def test_stats(self, session):
        await session.select_instrument("HBL")
        await session.handle_event(make_event(0, 1, 1, 1, 1))
        await session.handle_event(make_event(MINUTE_MS, 2, 2, 2, 2))

        stats = session.stats()
        assert stats.instrument == "HBL"
        assert stats.status is ChartStatus.CONNECTED
        assert stats.live_candles == 1
        assert stats.current.bucket_start == 60


class TestClearHistory:

    @pytest.mark.asyncio
    async def test_clear_drops_memory_and_storage(self, session, store, sink, dispatcher):
        store.set(storage_key("HBL"), STORED)
        await session.select_instrument("HBL")
        await session.handle_event(make_event(200_000, 1, 1, 1, 1))
        seen = _record(dispatcher, HistoryClearedEvent)

        await session.clear_history()

        assert store.get(storage_key("HBL")) is None
        assert session.stats().live_candles == 0
        assert session.stats().current is None
        assert sink.latest == []
        assert seen[0].instrument == "HBL"

    @pytest.mark.asyncio
    async def test_clear_survives_storage_failure(self, session, store):
        await session.select_instrument("HBL")
        await session.handle_event(make_event(0, 1, 1, 1, 1))
        store.fail_writes = True

        await session.clear_history()
        assert session.stats().current is None

    @pytest.mark.asyncio
    async def test_clear_without_instrument_is_noop(self, session):
        await session.clear_history()


class TestFeed:

    @pytest.mark.asyncio
    async def test_run_requires_instrument(self, session):
        with pytest.raises(RuntimeError):
            await session.run(ReplayFeed([]))

    @pytest.mark.asyncio
    async def test_run_consumes_feed(self, session, store, sink):
        feed = ReplayFeed(
            [
                FeedEvent("HBL", make_event(1_000, 10, 11, 9, 10)),
                FeedEvent("UBL", make_event(2_000, 99, 99, 99, 99)),
                FeedEvent("HBL", make_event(30_000, 10, 12, 9, 11)),
                FeedEvent("HBL", make_event(61_000, 11, 11, 10, 10.5)),
            ]
        )
        await session.select_instrument("HBL")
        await session.run(feed)

        assert not feed.connected
        assert [c.bucket_start for c in sink.latest] == [0, 60]
        assert sink.latest[0].high == 12
        assert store.writes == 1

    @pytest.mark.asyncio
    async def test_run_survives_bad_timestamp(self, session, sink):
        feed = ReplayFeed(
            [
                FeedEvent("HBL", make_event(float("nan"), 1, 1, 1, 1), received_ms=1_000),
                FeedEvent("HBL", make_event(61_000, 2, 2, 2, 2)),
            ]
        )
        await session.select_instrument("HBL")
        await session.run(feed)

        assert [c.bucket_start for c in sink.latest] == [0, 60]

    @pytest.mark.asyncio
    async def test_run_matches_feed_symbols_case_insensitively(self, session, sink):
        feed = ReplayFeed.from_payloads("hbl", [make_event(1_000, 10, 11, 9, 10)])
        await session.select_instrument("hbl")
        await session.run(feed)

        assert sink.last_candle is not None
        assert sink.last_candle.close == 10

    @pytest.mark.asyncio
    async def test_switch_instrument_discards_current_candle(self, session, store):
        store.set(storage_key("UBL"), STORED)
        feed = ReplayFeed([])
        await feed.connect()
        await session.select_instrument("HBL")
        await feed.subscribe("HBL")
        await session.handle_event(make_event(0, 1, 1, 1, 1))

        series = await session.switch_instrument(feed, "UBL")

        assert feed.subscriptions == {"UBL"}
        assert session.instrument == "UBL"
        assert len(series) == 2
        assert session.stats().current is None
        # in-progress HBL candle was never written
        assert store.get(storage_key("HBL")) is None

    @pytest.mark.asyncio
    async def test_switch_mid_stream_drops_old_symbol_events(self, store, sink, dispatcher):
        events = [
            FeedEvent("HBL", make_event(1_000, 1, 1, 1, 1)),
            FeedEvent("HBL", make_event(2_000, 2, 2, 2, 2)),
            FeedEvent("UBL", make_event(3_000, 50, 50, 50, 50)),
        ]
        feed = ReplayFeed(events)
        session = ChartSession(store=store, sink=sink, dispatcher=dispatcher)

        async def switch_on_first_tick(event):
            if session.instrument == "HBL":
                await session.switch_instrument(feed, "UBL")

        dispatcher.subscribe(TickReceivedEvent, switch_on_first_tick)
        await session.select_instrument("HBL")
        await session.run(feed)

        assert session.instrument == "UBL"
        assert [c.close for c in sink.latest] == [50]
