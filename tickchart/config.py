from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from tickchart.aggregation import DEFAULT_INTERVAL_MS, interval_from_period
from tickchart.storage import CandleStore, JsonFileCandleStore, MemoryCandleStore


FEATURED_SYMBOLS = ("HBL", "UBL", "MCB", "HUBC", "FFC")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ChartConfig:
    interval_ms: int = DEFAULT_INTERVAL_MS
    default_symbol: str = "HBL"
    symbols: tuple[str, ...] = field(default=FEATURED_SYMBOLS)
    storage_dir: Path | None = None
    log_level: str = "INFO"

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ChartConfig:
        """Validate and construct from a raw config mapping.

        ``interval_ms`` wins over ``period`` when both are given. Raises
        ``ValueError`` with a clear message on bad values instead of letting
        ``KeyError`` or ``TypeError`` propagate.
        """
        try:
            if raw.get("interval_ms") is not None:
                interval_ms = int(raw["interval_ms"])
            elif raw.get("period") is not None:
                interval_ms = interval_from_period(str(raw["period"]))
            else:
                interval_ms = DEFAULT_INTERVAL_MS
        except (TypeError, ValueError) as exc:
            raise ValueError("chart.interval_ms / chart.period is not a valid interval") from exc

        if interval_ms <= 0 or interval_ms % 1000 != 0:
            raise ValueError(
                f"chart.interval_ms must be a positive whole number of seconds, got {interval_ms}"
            )

        symbols_raw = raw.get("symbols", FEATURED_SYMBOLS)
        if isinstance(symbols_raw, str):
            symbols_raw = symbols_raw.split(",")
        try:
            symbols = tuple(s.strip().upper() for s in symbols_raw if s and s.strip())
        except (TypeError, AttributeError) as exc:
            raise ValueError("chart.symbols must be a list of strings") from exc
        if not symbols:
            raise ValueError("chart.symbols must name at least one instrument")

        default_symbol = str(raw.get("default_symbol") or symbols[0]).strip().upper()
        if default_symbol not in symbols:
            raise ValueError(
                f"chart.default_symbol {default_symbol!r} is not one of {list(symbols)}"
            )

        log_level = str(raw.get("log_level", "INFO")).strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(f"chart.log_level must be one of {_LOG_LEVELS}, got {log_level!r}")

        storage_dir = raw.get("storage_dir")

        return cls(
            interval_ms=interval_ms,
            default_symbol=default_symbol,
            symbols=symbols,
            storage_dir=Path(storage_dir) if storage_dir else None,
            log_level=log_level,
        )

    @classmethod
    def from_env(cls, prefix: str = "TICKCHART") -> ChartConfig:
        """Create config from environment variables."""
        raw: dict[str, Any] = {}
        for name in ("interval_ms", "period", "default_symbol", "symbols", "storage_dir", "log_level"):
            value = os.getenv(f"{prefix}_{name.upper()}")
            if value:
                raw[name] = value
        return cls.from_raw(raw)

    def make_store(self) -> CandleStore:
        """File-backed store when ``storage_dir`` is set, in-memory otherwise."""
        if self.storage_dir is None:
            return MemoryCandleStore()
        return JsonFileCandleStore(self.storage_dir)
