from dataclasses import dataclass
from typing import Any, Mapping


@dataclass
class Candle:
    """
    Represents a single OHLC bar over one fixed time bucket.

    Attributes:
        bucket_start: Bucket start in seconds since epoch, aligned to the
            aggregation interval
        open: First price in the bucket
        high: Highest price during the bucket
        low: Lowest price during the bucket
        close: Most recent price in the bucket
    """

    bucket_start: int
    open: float
    high: float
    low: float
    close: float

    @property
    def typical_price(self) -> float:
        """Typical price (HLC/3)."""
        return (self.high + self.low + self.close) / 3

    @property
    def mid(self) -> float:
        """Midpoint between high and low."""
        return (self.high + self.low) / 2

    @property
    def range(self) -> float:
        """Candle range (high - low)."""
        return self.high - self.low

    def is_valid(self) -> bool:
        """True when low <= open, close <= high."""
        return (
            self.low <= self.high
            and self.low <= self.open <= self.high
            and self.low <= self.close <= self.high
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the chart widget's row shape (``time`` in seconds)."""
        return {
            "time": self.bucket_start,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
        }

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "Candle":
        """
        Build a candle from a stored row.

        Accepts either ``time`` or ``bucket_start`` as the bucket key.

        Raises:
            ValueError: If the row is missing a field or holds a non-numeric value
        """
        try:
            key = row["time"] if "time" in row else row["bucket_start"]
            return cls(
                bucket_start=int(key),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid candle row: {row!r}") from exc

    def __repr__(self) -> str:
        return (
            f"Candle(bucket_start={self.bucket_start}, "
            f"O={self.open:.5f}, H={self.high:.5f}, "
            f"L={self.low:.5f}, C={self.close:.5f})"
        )
