"""Tests for the replay tick feed."""

import pytest

from tickchart.feed import FeedEvent, ReplayFeed


def _ev(symbol, c):
    return FeedEvent(symbol=symbol, payload={"tick": {"c": c}}, received_ms=0)


async def _collect(feed):
    return [ev async for ev in feed.events()]


class TestReplayFeed:

    @pytest.mark.asyncio
    async def test_only_subscribed_symbols_are_delivered(self):
        feed = ReplayFeed([_ev("HBL", 1), _ev("UBL", 2), _ev("HBL", 3)])
        await feed.connect()
        await feed.subscribe("HBL")

        events = await _collect(feed)
        assert [ev.payload["tick"]["c"] for ev in events] == [1, 3]

    @pytest.mark.asyncio
    async def test_nothing_delivered_when_not_connected(self):
        feed = ReplayFeed([_ev("HBL", 1)])
        await feed.subscribe("HBL")
        assert await _collect(feed) == []

    @pytest.mark.asyncio
    async def test_unsubscribe_and_disconnect(self):
        feed = ReplayFeed([])
        await feed.connect()
        await feed.subscribe("HBL")
        await feed.subscribe("UBL")
        await feed.unsubscribe("HBL")
        assert feed.subscriptions == {"UBL"}

        await feed.disconnect()
        assert not feed.connected
        assert feed.subscriptions == set()

    @pytest.mark.asyncio
    async def test_symbols_match_case_insensitively(self):
        feed = ReplayFeed([_ev("hbl", 1), _ev("HBL", 2), _ev("ubl", 3)])
        await feed.connect()
        await feed.subscribe("Hbl")

        events = await _collect(feed)
        assert [ev.payload["tick"]["c"] for ev in events] == [1, 2]
        assert feed.subscriptions == {"HBL"}

        await feed.unsubscribe("hbl")
        assert feed.subscriptions == set()

    @pytest.mark.asyncio
    async def test_from_payloads(self):
        feed = ReplayFeed.from_payloads("HBL", [{"tick": {"c": 1}}, {"tick": {"c": 2}}], received_ms=42)
        await feed.connect()
        await feed.subscribe("HBL")

        events = await _collect(feed)
        assert len(events) == 2
        assert all(ev.received_ms == 42 for ev in events)
        assert all(ev.symbol == "HBL" for ev in events)

    def test_feed_event_defaults_received_time(self, monkeypatch):
        monkeypatch.setattr("tickchart.feed.now_ms", lambda: 77)
        assert FeedEvent(symbol="HBL", payload={}).received_ms == 77
