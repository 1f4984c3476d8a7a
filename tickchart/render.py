"""Rendering sinks for the merged candle series."""

import abc
from typing import Optional

import numpy as np

from tickchart.marketdata import Candle


__all__ = ["RenderSink", "SnapshotSink"]


class RenderSink(abc.ABC):
    """Receives the full, time-ordered candle list on every update."""

    @abc.abstractmethod
    def set_data(self, candles: list[Candle]) -> None:
        """Replace everything drawn with *candles*."""
        raise NotImplementedError


class SnapshotSink(RenderSink):
    """Keeps the most recent snapshot; useful headless and in tests."""

    def __init__(self) -> None:
        self._latest: list[Candle] = []
        self.redraws = 0

    def set_data(self, candles: list[Candle]) -> None:
        self._latest = list(candles)
        self.redraws += 1

    @property
    def latest(self) -> list[Candle]:
        return list(self._latest)

    @property
    def last_candle(self) -> Optional[Candle]:
        return self._latest[-1] if self._latest else None

    def rows(self) -> list[dict]:
        """The snapshot in the chart widget's row shape."""
        return [c.to_dict() for c in self._latest]

    def closes(self) -> np.ndarray:
        return np.array([c.close for c in self._latest], dtype=np.float64)
