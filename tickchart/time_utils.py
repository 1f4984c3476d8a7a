"""Centralised timestamp handling.

Feed timestamps are milliseconds since epoch; candle buckets are keyed in
seconds since epoch (the chart widget's time unit). Conversions between the
two, and to human-readable ISO strings for logs, live here.
"""

import math
import time
from datetime import datetime, timezone


# ---------------------------------------------------------------------------
# Core conversions
# ---------------------------------------------------------------------------


def now_ms() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return time.time_ns() // 1_000_000


def parse_timestamp(ts: str | int | float | None) -> int | None:
    """Parse a feed timestamp into integer milliseconds since epoch.

    Accepted inputs:
      * Integer or float milliseconds since epoch
      * String containing a numeric value (e.g. ``"1640995200000"``)
      * ISO 8601 string (``T`` or space separator, with or without ``Z``)
      * ``None`` / empty string -> ``None`` (caller decides the fallback)

    Booleans are rejected: ``True`` is an int in Python but never a timestamp.
    """
    if ts is None or isinstance(ts, bool):
        return None

    if isinstance(ts, float) and not math.isfinite(ts):
        return None
    if isinstance(ts, (int, float)):
        return int(ts)

    s = str(ts).strip()
    if not s:
        return None

    if s.replace(".", "", 1).lstrip("-").isdigit():
        try:
            value = float(s)
        except ValueError:
            return None
        return int(value) if math.isfinite(value) else None

    s = s.replace("Z", "+00:00").replace(" ", "T", 1)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        return int(dt.timestamp() * 1000)
    except (OverflowError, OSError):
        return None


def ms_to_iso(ms: int) -> str:
    """Convert milliseconds since epoch to an ISO string (space separator)."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat().replace("T", " ")


def seconds_to_iso(seconds: int) -> str:
    """Convert a candle bucket start (seconds since epoch) to an ISO string."""
    return ms_to_iso(seconds * 1000)


def ms_to_seconds(ms: int) -> int:
    """Floor milliseconds to whole seconds."""
    return ms // 1000
