import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from tickchart.errors import MalformedTickError
from tickchart.time_utils import now_ms, parse_timestamp


def _price(value: Any) -> Optional[float]:
    """Coerce a feed price field to float, or None when missing/unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(price) or math.isinf(price):
        return None
    return price


@dataclass(frozen=True)
class Tick:
    """
    A single price update for an instrument, as delivered by the push feed.

    Each tick carries its own open/high/low/close. Any of the four may be
    ``None`` when the upstream payload omitted it; the aggregator treats a
    missing field as a no-op for the corresponding update.
    """

    instrument: str
    timestamp_ms: int
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.open is None
            and self.high is None
            and self.low is None
            and self.close is None
        )

    @property
    def is_complete(self) -> bool:
        return None not in (self.open, self.high, self.low, self.close)

    @classmethod
    def from_event(
        cls,
        instrument: str,
        payload: Mapping[str, Any],
        *,
        received_ms: Optional[int] = None,
    ) -> "Tick":
        """
        Parse a feed event of shape ``{"timestamp"?: ms, "tick": {"o", "h", "l", "c"}}``.

        A missing or unparseable timestamp defaults to *received_ms*, or to
        the current wall-clock time when that is not given either.

        Raises:
            MalformedTickError: If the payload has no ``tick`` mapping
        """
        if not isinstance(payload, Mapping):
            raise MalformedTickError(f"Feed event for {instrument} is not a mapping: {payload!r}")

        body = payload.get("tick")
        if not isinstance(body, Mapping):
            raise MalformedTickError(f"Feed event for {instrument} has no tick: {payload!r}")

        ts = parse_timestamp(payload.get("timestamp"))
        if ts is None:
            ts = received_ms if received_ms is not None else now_ms()

        return cls(
            instrument=instrument,
            timestamp_ms=ts,
            open=_price(body.get("o")),
            high=_price(body.get("h")),
            low=_price(body.get("l")),
            close=_price(body.get("c")),
        )
