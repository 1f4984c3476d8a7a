# tickchart/__init__.py
"""
Tickchart - live candle charts from a tick feed.

Buckets streamed price ticks into fixed-interval OHLC candles, keeps closed
candles in a durable per-instrument store, and hands a de-duplicated,
time-ordered series to a rendering sink.
"""

from .aggregation import TickAggregator, TickResult, merge_for_display
from .config import ChartConfig
from .marketdata import Candle, CandleSeries, Tick
from .runner import configure_logging, run_chart
from .session import ChartSession, ChartStatus

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Candle",
    "CandleSeries",
    "ChartConfig",
    "ChartSession",
    "ChartStatus",
    "Tick",
    "TickAggregator",
    "TickResult",
    "configure_logging",
    "merge_for_display",
    "run_chart",
]
