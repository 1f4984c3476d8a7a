import asyncio
import logging
from abc import ABC
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def event(cls):
    return dataclass(frozen=True, slots=True)(cls)


@dataclass(frozen=True, slots=True, kw_only=True)
class DomainEvent(ABC):
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


Handler = Callable[[DomainEvent], None | Awaitable[None]]


class EventDispatcher:
    """Routes chart events to sync or async handlers.

    A handler may be scoped to one instrument, in which case it only sees
    events whose ``instrument`` field matches (case-insensitive). A failing
    handler is logged; the remaining handlers still run.
    """

    def __init__(self):
        self._handlers: dict[type[DomainEvent], list[tuple[Handler, Optional[str]]]] = defaultdict(list)

    def subscribe(
        self,
        event_type: type[DomainEvent],
        handler: Handler,
        *,
        instrument: Optional[str] = None,
    ) -> None:
        """Register a handler for an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Sync or async callable that accepts the event
            instrument: Only deliver events for this instrument (None = all)
        """
        scope = instrument.strip().upper() if instrument else None
        self._handlers[event_type].append((handler, scope))

    def unsubscribe(self, event_type: type[DomainEvent], handler: Handler) -> None:
        """Remove every registration of *handler* for *event_type*."""
        self._handlers[event_type] = [
            (h, scope) for h, scope in self._handlers[event_type] if h != handler
        ]

    async def publish(self, event: DomainEvent) -> None:
        """Dispatch *event* to matching handlers in subscription order."""
        instrument = getattr(event, "instrument", None)
        key = instrument.upper() if isinstance(instrument, str) else None

        for handler, scope in list(self._handlers[type(event)]):
            if scope is not None and scope != key:
                continue
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    "Event handler %s failed for %s: %s",
                    getattr(handler, "__name__", repr(handler)),
                    event.__class__.__name__,
                    e,
                    exc_info=True,
                )


# Lazy singleton
_dispatcher: EventDispatcher | None = None


def get_dispatcher() -> EventDispatcher:
    """Get the process-wide event dispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = EventDispatcher()
    return _dispatcher
