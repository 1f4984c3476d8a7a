"""
Durable key-value storage for closed candle series.

Series are stored per instrument under :func:`storage_key`. Stores raise
:class:`~tickchart.errors.StorageError` when they cannot read or write;
callers decide how to degrade (the chart session falls back to an empty
series and keeps running).
"""

import abc
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from tickchart.errors import StorageError

log = logging.getLogger(__name__)


__all__ = [
    "CandleStore",
    "JsonFileCandleStore",
    "MemoryCandleStore",
    "storage_key",
]


def storage_key(symbol: str) -> str:
    """Store key for an instrument's closed candles."""
    return f"candles_{symbol.strip().upper()}"


class CandleStore(abc.ABC):
    """Abstract base for a durable key-value store of candle rows."""

    @abc.abstractmethod
    def get(self, key: str) -> list[dict[str, Any]] | None:
        """Return the stored rows for *key*, or None if absent."""
        raise NotImplementedError

    @abc.abstractmethod
    def set(self, key: str, rows: list[dict[str, Any]]) -> None:
        """Replace the rows stored under *key*."""
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*; a missing key is not an error."""
        raise NotImplementedError


class MemoryCandleStore(CandleStore):
    """
    In-process store.

    Setting ``fail_reads`` / ``fail_writes`` makes the corresponding calls
    raise ``StorageError``, mimicking disabled or full browser storage.
    """

    def __init__(self) -> None:
        self._data: dict[str, list[dict[str, Any]]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0

    def get(self, key: str) -> list[dict[str, Any]] | None:
        if self.fail_reads:
            raise StorageError(f"read of {key!r} failed")
        rows = self._data.get(key)
        return [dict(r) for r in rows] if rows is not None else None

    def set(self, key: str, rows: list[dict[str, Any]]) -> None:
        if self.fail_writes:
            raise StorageError(f"write of {key!r} failed")
        self._data[key] = [dict(r) for r in rows]
        self.writes += 1

    def delete(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError(f"delete of {key!r} failed")
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileCandleStore(CandleStore):
    """
    Persists each key to its own JSON file.

    Write pattern:
      Every :meth:`set` rewrites the whole series for that key. The file is
      written atomically (write to ``.<name>.tmp``, then rename), so readers
      never observe a half-written series.

    Read pattern:
      :meth:`get` returns ``None`` when no file exists and raises
      ``StorageError`` when the file is unreadable or not a valid payload.
    """

    VERSION = 1

    def __init__(self, directory: Path):
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self._dir / f"{safe}.json"

    def get(self, key: str) -> list[dict[str, Any]] | None:
        path = self._path(key)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read {path}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("candles"), list):
            raise StorageError(f"Unexpected payload in {path}")
        return data["candles"]

    def set(self, key: str, rows: list[dict[str, Any]]) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f".{path.name}.tmp")
        data = {
            "version": self.VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "candles": rows,
        }
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data))
            tmp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Failed to write {path}") from exc
        log.debug("Saved %d candles to %s", len(rows), path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}") from exc
