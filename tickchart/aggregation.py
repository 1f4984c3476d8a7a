"""Tick-to-candle aggregation."""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional

from tickchart.marketdata import Candle, CandleSeries, Tick


log = logging.getLogger(__name__)


__all__ = [
    "DEFAULT_INTERVAL_MS",
    "TickAggregator",
    "TickResult",
    "bucket_start_ms",
    "interval_from_period",
    "merge_for_display",
]


DEFAULT_INTERVAL_MS = 60_000


def interval_from_period(period: str) -> int:
    """Convert a period string (``SECOND``, ``5MINUTE``, ``HOUR``, ``DAY``) to milliseconds."""
    p = period.strip().upper()

    if p == "SECOND":
        return 1_000
    if p.endswith("MINUTE"):
        n = p.removesuffix("MINUTE") or "1"
        if n.isdigit() and int(n) > 0:
            return int(n) * 60_000
    if p == "HOUR":
        return 60 * 60_000
    if p == "DAY":
        return 24 * 60 * 60_000

    raise ValueError(f"Unsupported period: {period!r}")


def bucket_start_ms(timestamp_ms: int, interval_ms: int) -> int:
    """Start of the bucket containing *timestamp_ms*, floored to the interval."""
    return (timestamp_ms // interval_ms) * interval_ms


def merge_for_display(series: Iterable[Candle], current: Optional[Candle]) -> list[Candle]:
    """
    Combine closed candles with the in-progress candle for rendering.

    The result is sorted by bucket start and unique per bucket; when a bucket
    appears more than once the last occurrence wins, so the in-progress candle
    replaces a stale closed copy of the same bucket. Inputs are not mutated
    and the returned candles are copies.
    """
    rows = list(series)
    if current is not None:
        rows.append(current)

    # sort is stable, so later duplicates stay later
    rows.sort(key=lambda c: c.bucket_start)

    unique: dict[int, Candle] = {}
    for candle in rows:
        unique[candle.bucket_start] = candle

    return [replace(c) for c in unique.values()]


@dataclass(frozen=True)
class TickResult:
    """Outcome of feeding one tick to the aggregator."""

    current: Optional[Candle]
    closed: Optional[Candle] = None
    ignored: bool = False


def _first(*values: Optional[float]) -> Optional[float]:
    for v in values:
        if v is not None:
            return v
    return None


def _open_candle(bucket_start: int, tick: Tick) -> Candle:
    prices = [p for p in (tick.open, tick.high, tick.low, tick.close) if p is not None]
    return Candle(
        bucket_start=bucket_start,
        open=_first(tick.open, tick.close, tick.high, tick.low),
        high=max(prices),
        low=min(prices),
        close=_first(tick.close, tick.open, tick.low, tick.high),
    )


class TickAggregator:
    """
    Build fixed-interval OHLC candles from a push feed of ticks for one instrument.

    - Buckets are aligned to ``interval_ms`` boundaries of the tick timestamp.
    - At most one candle (the current candle) is mutable at a time.
    - A tick for any other bucket closes the current candle into the series,
      including a late tick for an earlier bucket.
    - ``on_close`` runs once per candle actually appended to the series and
      never on in-bucket updates.

    Usage:
        aggregator = TickAggregator("HBL", interval_ms=60_000, on_close=save)
        result = aggregator.on_tick(tick)
        sink.set_data(aggregator.snapshot())
    """

    def __init__(
        self,
        instrument: str,
        *,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        series: Optional[CandleSeries] = None,
        on_close: Optional[Callable[[CandleSeries, Candle], None]] = None,
    ):
        """
        Initialize aggregator.

        Args:
            instrument: Instrument symbol the ticks belong to
            interval_ms: Bucket width in milliseconds (whole seconds only)
            series: Previously closed candles, e.g. restored from storage
            on_close: Called with the series and the appended candle on each close
        """
        if interval_ms <= 0 or interval_ms % 1000 != 0:
            raise ValueError(
                f"interval_ms must be a positive whole number of seconds, got {interval_ms!r}"
            )

        self.instrument = instrument
        self.interval_ms = interval_ms
        self._on_close = on_close
        self._series = series if series is not None else CandleSeries(instrument)
        self._current: Optional[Candle] = None

    @property
    def current(self) -> Optional[Candle]:
        """Copy of the in-progress candle, or None before the first tick."""
        return replace(self._current) if self._current is not None else None

    @property
    def series(self) -> CandleSeries:
        return self._series

    def bucket_for(self, timestamp_ms: int) -> int:
        """Bucket start in seconds for a timestamp in milliseconds."""
        return bucket_start_ms(timestamp_ms, self.interval_ms) // 1000

    def on_tick(self, tick: Tick, arrival_ms: Optional[int] = None) -> TickResult:
        """
        Feed one tick.

        Args:
            tick: Tick for this aggregator's instrument
            arrival_ms: Timestamp to bucket by (defaults to ``tick.timestamp_ms``)

        Returns:
            TickResult with the updated current candle and, when a candle was
            closed and appended, the closed candle
        """
        if tick.is_empty:
            log.debug("%s: ignoring tick with no prices at %d", self.instrument, tick.timestamp_ms)
            return TickResult(current=self.current, ignored=True)

        ts = tick.timestamp_ms if arrival_ms is None else arrival_ms
        bucket_start = self.bucket_for(ts)

        current = self._current
        if current is not None and current.bucket_start == bucket_start:
            self._update(current, tick)
            return TickResult(current=self.current)

        closed = None
        if current is not None:
            if current.bucket_start > bucket_start:
                log.debug(
                    "%s: late tick for bucket %d while bucket %d is open",
                    self.instrument,
                    bucket_start,
                    current.bucket_start,
                )
            closed = self._close(current)

        self._current = _open_candle(bucket_start, tick)
        return TickResult(current=self.current, closed=closed)

    def _update(self, candle: Candle, tick: Tick) -> None:
        if tick.high is not None:
            candle.high = max(candle.high, tick.high)
        if tick.low is not None:
            candle.low = min(candle.low, tick.low)
        if tick.close is not None:
            candle.close = tick.close
            candle.high = max(candle.high, candle.close)
            candle.low = min(candle.low, candle.close)

    def _close(self, candle: Candle) -> Optional[Candle]:
        if not self._series.append(candle):
            return None

        log.debug(
            "%s: closed candle %d O=%s H=%s L=%s C=%s (%d in series)",
            self.instrument,
            candle.bucket_start,
            candle.open,
            candle.high,
            candle.low,
            candle.close,
            len(self._series),
        )
        if self._on_close is not None:
            self._on_close(self._series, candle)
        return replace(candle)

    def snapshot(self) -> list[Candle]:
        """Time-ordered, de-duplicated closed candles plus the current candle."""
        return merge_for_display(self._series, self._current)

    def reset(self, series: Optional[CandleSeries] = None) -> None:
        """Discard the current candle (not flushed) and replace the series."""
        self._current = None
        self._series = series if series is not None else CandleSeries(self.instrument)

    def clear(self) -> None:
        """Drop the current candle and every closed candle."""
        self._current = None
        self._series.clear()

    def __repr__(self) -> str:
        return (
            f"TickAggregator(instrument={self.instrument}, interval_ms={self.interval_ms}, "
            f"closed={len(self._series)}, current={self._current!r})"
        )
