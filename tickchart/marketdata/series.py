import logging
from typing import Any, Iterable, Iterator, Optional

import numpy as np

from tickchart.marketdata.candle import Candle

log = logging.getLogger(__name__)


class CandleSeries:
    """
    Closed candles for one instrument, unique by bucket start.

    Candles are kept in append order. Late ticks can close a candle whose
    bucket is earlier than the previous one, so append order is not assumed
    to be time order; use :func:`tickchart.aggregation.merge_for_display`
    for a time-ordered view.

    Example:
        series = CandleSeries("HBL")
        series.append(candle)

        closes = series.get_closes()
        highs = series.get_highs(count=20)  # Last 20 candles only
    """

    def __init__(self, instrument: str, candles: Iterable[Candle] = ()):
        self.instrument = instrument
        self._candles: list[Candle] = []
        self._buckets: set[int] = set()
        for candle in candles:
            self.append(candle)

    def append(self, candle: Candle) -> bool:
        """
        Append a closed candle unless its bucket is already present.

        Returns:
            True if appended, False if the bucket was a duplicate
        """
        if candle.bucket_start in self._buckets:
            log.debug(
                "%s: candle at %d already in series, skipping duplicate",
                self.instrument,
                candle.bucket_start,
            )
            return False
        self._candles.append(candle)
        self._buckets.add(candle.bucket_start)
        return True

    def contains(self, bucket_start: int) -> bool:
        return bucket_start in self._buckets

    def clear(self) -> None:
        self._candles.clear()
        self._buckets.clear()

    def get_candles(self, count: Optional[int] = None) -> list[Candle]:
        """
        Get candle objects.

        Args:
            count: Number of most recently appended candles to return (None = all)

        Returns:
            List of Candle objects in append order
        """
        if count is None:
            return list(self._candles)
        return self._candles[-count:] if count > 0 else []

    def get_opens(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of opening prices."""
        return np.array([c.open for c in self.get_candles(count)], dtype=np.float64)

    def get_highs(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of high prices."""
        return np.array([c.high for c in self.get_candles(count)], dtype=np.float64)

    def get_lows(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of low prices."""
        return np.array([c.low for c in self.get_candles(count)], dtype=np.float64)

    def get_closes(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of closing prices."""
        return np.array([c.close for c in self.get_candles(count)], dtype=np.float64)

    def get_typical_prices(self, count: Optional[int] = None) -> np.ndarray:
        """Get array of typical prices (HLC/3)."""
        return np.array([c.typical_price for c in self.get_candles(count)], dtype=np.float64)

    def to_list(self) -> list[dict[str, Any]]:
        """Serialise for the durable store."""
        return [c.to_dict() for c in self._candles]

    @classmethod
    def from_list(cls, instrument: str, rows: Iterable[Any]) -> "CandleSeries":
        """
        Rebuild a series from stored rows.

        Malformed rows are dropped with a warning; a repeated bucket keeps
        its first occurrence.
        """
        series = cls(instrument)
        for row in rows:
            try:
                candle = Candle.from_dict(row)
            except ValueError:
                log.warning("%s: dropping malformed stored candle %r", instrument, row)
                continue
            series.append(candle)
        return series

    @property
    def latest(self) -> Optional[Candle]:
        """The most recently appended candle, or None if empty."""
        return self._candles[-1] if self._candles else None

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._candles)

    def __len__(self) -> int:
        return len(self._candles)

    def __repr__(self) -> str:
        return f"CandleSeries(instrument={self.instrument}, candles={len(self)})"
