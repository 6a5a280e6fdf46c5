"""Key-value stores with per-entry TTL and prefix cleanup.

The landing cache only relies on the :class:`KeyValueStore` contract, so a
hosting environment can plug in its own store. Two are provided:

- :class:`MemoryStore` — process-local dict, used in tests and one-off runs.
- :class:`JsonFileStore` — the same structure persisted to a JSON file, so
  results survive restarts (e.g. a prefetch run followed by a cache-only
  sync run).

Each stored record is ``{"value": ..., "time": written_ms, "ttl": ttl_ms}``.
Reads of an expired record return None; ``cleanup(prefix)`` deletes every
record whose key starts with *prefix*, fresh or not.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String-keyed, TTL-aware, prefix-cleanable store."""

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        ...

    def cleanup(self, prefix: str) -> int:
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def _expired(record: dict[str, Any], now: int) -> bool:
    try:
        return now - int(record["time"]) >= int(record["ttl"])
    except (KeyError, TypeError, ValueError):
        return True


class MemoryStore:
    """In-memory :class:`KeyValueStore`."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> Any | None:
        record = self._records.get(key)
        if record is None:
            return None
        if _expired(record, _now_ms()):
            self._records.pop(key, None)
            return None
        return record["value"]

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        self._records[key] = {"value": value, "time": _now_ms(), "ttl": int(ttl_ms)}

    def cleanup(self, prefix: str) -> int:
        doomed = [key for key in self._records if key.startswith(prefix)]
        for key in doomed:
            del self._records[key]
        if doomed:
            self._on_change()
        return len(doomed)

    def __len__(self) -> int:
        return len(self._records)

    def _on_change(self) -> None:
        """Hook for persistent subclasses."""


class JsonFileStore(MemoryStore):
    """:class:`MemoryStore` persisted to a JSON file after every change.

    A missing file starts empty; an unreadable or corrupt file is logged and
    replaced on the next write. Inside :meth:`batch` changes only mark the
    store dirty and the file is written once when the outermost batch exits.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        super().__init__()
        self._path = Path(path)
        self._batch_depth = 0
        self._dirty = False
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        super().set(key, value, ttl_ms)
        self._on_change()

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Defer persistence until the block exits, even on error."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._write()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self._path, exc)
            return
        if not isinstance(raw, dict):
            logger.warning("Ignoring cache file %s: not a JSON object", self._path)
            return
        self._records = {
            str(key): record for key, record in raw.items() if isinstance(record, dict)
        }
        logger.debug("Loaded %d cache records from %s", len(self._records), self._path)

    def _on_change(self) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self._write()

    def _write(self) -> None:
        self._dirty = False
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._records, f, ensure_ascii=False)
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
