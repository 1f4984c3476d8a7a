from tickchart.events import DomainEvent, event

from .candle import Candle
from .tick import Tick


@event
class TickReceivedEvent(DomainEvent):
    """Emitted for every tick the chart session accepts."""

    instrument: str
    tick: Tick


@event
class CandleClosedEvent(DomainEvent):
    instrument: str
    interval_ms: int
    candle: Candle


@event
class InstrumentSelectedEvent(DomainEvent):
    """Emitted after an instrument switch; ``loaded`` is the restored candle count."""

    instrument: str
    loaded: int


@event
class HistoryClearedEvent(DomainEvent):
    instrument: str
