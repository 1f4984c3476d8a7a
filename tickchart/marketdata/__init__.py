from .candle import Candle
from .events import (
    CandleClosedEvent,
    HistoryClearedEvent,
    InstrumentSelectedEvent,
    TickReceivedEvent,
)
from .series import CandleSeries
from .tick import Tick

__all__ = [
    "Candle",
    "CandleClosedEvent",
    "CandleSeries",
    "HistoryClearedEvent",
    "InstrumentSelectedEvent",
    "Tick",
    "TickReceivedEvent",
]
