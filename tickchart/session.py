"""
Chart session: one live candle chart for one instrument at a time.

The session owns a :class:`~tickchart.aggregation.TickAggregator` for the
active instrument and wires it to the durable store, the rendering sink and
the event dispatcher. Its lifetime is the instrument subscription: selecting
another instrument discards the in-progress candle (it is never persisted)
and reloads the stored series for the new one.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from tickchart.aggregation import DEFAULT_INTERVAL_MS, TickAggregator, TickResult
from tickchart.errors import MalformedTickError
from tickchart.events import EventDispatcher, get_dispatcher
from tickchart.feed import TickFeed
from tickchart.marketdata import (
    Candle,
    CandleClosedEvent,
    CandleSeries,
    HistoryClearedEvent,
    InstrumentSelectedEvent,
    Tick,
    TickReceivedEvent,
)
from tickchart.render import RenderSink
from tickchart.storage import CandleStore, storage_key


log = logging.getLogger(__name__)


__all__ = ["ChartSession", "ChartStats", "ChartStatus"]


class ChartStatus(str, Enum):
    NO_INSTRUMENT = "no_instrument"
    WAITING = "waiting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ChartStats:
    instrument: Optional[str]
    status: ChartStatus
    live_candles: int
    current: Optional[Candle]


class ChartSession:
    """
    Drives a live candle chart from a tick feed.

    Storage failures are logged and never interrupt the chart: a failed read
    starts the instrument with an empty series, a failed write leaves the
    in-memory series untouched. Malformed ticks are logged and skipped.

    Example:
        session = ChartSession(store=JsonFileCandleStore(path), sink=sink)
        await session.select_instrument("HBL")
        await session.run(feed)
    """

    def __init__(
        self,
        *,
        store: CandleStore,
        sink: Optional[RenderSink] = None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        dispatcher: Optional[EventDispatcher] = None,
    ):
        self.store = store
        self.sink = sink
        self.interval_ms = interval_ms
        self.dispatcher = dispatcher or get_dispatcher()

        self._aggregator: Optional[TickAggregator] = None
        self._status = ChartStatus.NO_INSTRUMENT

    @property
    def instrument(self) -> Optional[str]:
        return self._aggregator.instrument if self._aggregator else None

    @property
    def aggregator(self) -> Optional[TickAggregator]:
        return self._aggregator

    @property
    def status(self) -> ChartStatus:
        return self._status

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _load_series(self, symbol: str) -> CandleSeries:
        key = storage_key(symbol)
        try:
            rows = self.store.get(key)
        except Exception:
            log.exception("Failed to load candles for %s, starting empty", symbol)
            return CandleSeries(symbol)

        if rows is None:
            return CandleSeries(symbol)
        if not isinstance(rows, list):
            log.warning("Stored candles for %s are not a list, starting empty", symbol)
            return CandleSeries(symbol)
        return CandleSeries.from_list(symbol, rows)

    def _persist(self, series: CandleSeries, candle: Candle) -> None:
        try:
            self.store.set(storage_key(series.instrument), series.to_list())
        except Exception:
            log.exception(
                "Failed to save candles for %s after closing %d",
                series.instrument,
                candle.bucket_start,
            )
            return
        log.debug("Saved candle %d for %s. Total: %d", candle.bucket_start, series.instrument, len(series))

    # ------------------------------------------------------------------
    # Instrument lifecycle
    # ------------------------------------------------------------------

    async def select_instrument(self, symbol: str) -> CandleSeries:
        """
        Make *symbol* the active instrument.

        Any in-progress candle of the previous instrument is discarded.

        Returns:
            The closed series restored from storage (possibly empty)
        """
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("symbol must not be empty")

        series = self._load_series(symbol)
        if self._aggregator is not None and self._aggregator.current is not None:
            log.info(
                "Discarding in-progress %s candle on switch to %s",
                self._aggregator.instrument,
                symbol,
            )

        self._aggregator = TickAggregator(
            symbol,
            interval_ms=self.interval_ms,
            series=series,
            on_close=self._persist,
        )
        self._status = ChartStatus.WAITING
        log.info("Loaded %d previous candles for %s", len(series), symbol)

        self._render()
        await self.dispatcher.publish(InstrumentSelectedEvent(instrument=symbol, loaded=len(series)))
        return series

    async def clear_history(self) -> None:
        """Drop all candles of the active instrument, in memory and in storage."""
        if self._aggregator is None:
            return

        symbol = self._aggregator.instrument
        self._aggregator.clear()
        try:
            self.store.delete(storage_key(symbol))
        except Exception:
            log.exception("Failed to clear stored candles for %s", symbol)
        else:
            log.info("Cleared candle history for %s", symbol)

        self._render()
        await self.dispatcher.publish(HistoryClearedEvent(instrument=symbol))

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def handle_event(
        self, payload: Any, received_ms: Optional[int] = None
    ) -> Optional[TickResult]:
        """
        Apply one raw feed event to the active instrument.

        Returns:
            The aggregator result, or None if the event was dropped
        """
        agg = self._aggregator
        if agg is None:
            log.debug("Dropping tick, no instrument selected")
            return None

        try:
            tick = Tick.from_event(agg.instrument, payload, received_ms=received_ms)
        except MalformedTickError as e:
            log.warning("Ignoring malformed tick: %s", e)
            return None

        result = agg.on_tick(tick)
        if result.ignored:
            return result

        self._status = ChartStatus.CONNECTED
        self._render()

        await self.dispatcher.publish(TickReceivedEvent(instrument=agg.instrument, tick=tick))
        if result.closed is not None:
            await self.dispatcher.publish(
                CandleClosedEvent(
                    instrument=agg.instrument,
                    interval_ms=agg.interval_ms,
                    candle=result.closed,
                )
            )
        return result

    def _render(self) -> None:
        if self.sink is None or self._aggregator is None:
            return
        self.sink.set_data(self._aggregator.snapshot())

    def stats(self) -> ChartStats:
        agg = self._aggregator
        return ChartStats(
            instrument=self.instrument,
            status=self._status,
            live_candles=len(agg.series) if agg else 0,
            current=agg.current if agg else None,
        )

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    async def run(self, feed: TickFeed) -> None:
        """
        Consume *feed* for the active instrument until it is exhausted.

        Events for any other symbol (e.g. in flight across a switch) are
        dropped. The feed is disconnected on exit.
        """
        if self._aggregator is None:
            raise RuntimeError("select_instrument() must be called before run()")

        await feed.connect()
        await feed.subscribe(self._aggregator.instrument)
        try:
            async for ev in feed.events():
                if ev.symbol.strip().upper() != self.instrument:
                    log.debug("Dropping tick for %s while charting %s", ev.symbol, self.instrument)
                    continue
                await self.handle_event(ev.payload, received_ms=ev.received_ms)
        finally:
            await feed.disconnect()
            log.info("Feed closed for %s", self.instrument)

    async def switch_instrument(self, feed: TickFeed, symbol: str) -> CandleSeries:
        """Move the feed subscription and the chart to *symbol*."""
        previous = self.instrument
        if previous is not None:
            await feed.unsubscribe(previous)
        series = await self.select_instrument(symbol)
        await feed.subscribe(self.instrument)
        return series
