"""
Push feed interfaces.

A feed delivers raw tick events for the symbols it is subscribed to. Socket
framing and reconnection belong to the concrete feed; after a reconnect the
chart session simply resumes with a fresh current candle.
"""

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterable, Optional

from tickchart.time_utils import now_ms

log = logging.getLogger(__name__)


__all__ = [
    "FeedEvent",
    "ReplayFeed",
    "TickFeed",
]


@dataclass(frozen=True)
class FeedEvent:
    """A raw tick event as received from the feed."""

    symbol: str
    payload: dict[str, Any]
    received_ms: int = field(default_factory=lambda: now_ms())


class TickFeed(abc.ABC):
    """Abstract base for a real-time (or replay) tick feed."""

    @abc.abstractmethod
    async def connect(self) -> None:
        """Establish the underlying connection (e.g. WebSocket)."""
        raise NotImplementedError

    @abc.abstractmethod
    async def disconnect(self) -> None:
        """Tear down the underlying connection and drop all subscriptions."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(self, symbol: str) -> None:
        """Start receiving ticks for *symbol*."""
        raise NotImplementedError

    @abc.abstractmethod
    async def unsubscribe(self, symbol: str) -> None:
        """Stop receiving ticks for *symbol*."""
        raise NotImplementedError

    @abc.abstractmethod
    def events(self) -> AsyncIterator[FeedEvent]:
        """Iterate over incoming events until the feed is exhausted or closed."""
        raise NotImplementedError


class ReplayFeed(TickFeed):
    """
    Replays recorded tick events.

    Events are delivered in the order given. Events whose symbol is not
    currently subscribed are skipped, the way a live feed would never send
    them. Symbols match case-insensitively. ``delay`` inserts a pause
    between events (seconds).
    """

    def __init__(self, events: Iterable[FeedEvent], *, delay: float = 0.0):
        self._events = list(events)
        self._delay = delay
        self._subscribed: set[str] = set()
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def subscriptions(self) -> set[str]:
        return set(self._subscribed)

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False
        self._subscribed.clear()

    async def subscribe(self, symbol: str) -> None:
        log.debug("Replay feed subscribed to %s", symbol)
        self._subscribed.add(symbol.strip().upper())

    async def unsubscribe(self, symbol: str) -> None:
        log.debug("Replay feed unsubscribed from %s", symbol)
        self._subscribed.discard(symbol.strip().upper())

    async def events(self) -> AsyncIterator[FeedEvent]:
        for ev in self._events:
            if not self._connected:
                return
            if ev.symbol.strip().upper() not in self._subscribed:
                continue
            yield ev
            if self._delay:
                await asyncio.sleep(self._delay)

    @classmethod
    def from_payloads(
        cls, symbol: str, payloads: Iterable[dict[str, Any]], *, received_ms: Optional[int] = None
    ) -> "ReplayFeed":
        """Build a feed for one symbol from raw payload dicts."""
        kwargs = {} if received_ms is None else {"received_ms": received_ms}
        return cls(FeedEvent(symbol=symbol, payload=p, **kwargs) for p in payloads)
