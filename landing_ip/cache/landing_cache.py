"""TTL cache of landing results on top of an injected key-value store.

Entries are ``{"result": <GeoResult dump>, "written_at": epoch_ms}``. The
adapter checks the write timestamp itself, so an entry older than the
caller's TTL is absent even when the store would still return it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from pydantic import ValidationError

from landing_ip.cache.store import KeyValueStore
from landing_ip.middleware.error_handler import CacheStoreError
from landing_ip.models.geo import GeoResult, now_ms

logger = logging.getLogger(__name__)


class LandingCache:
    """Get/set landing results with expiry, plus best-effort prefix cleanup."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def get(self, key: str, ttl_ms: int) -> GeoResult | None:
        """Return the cached result for *key*, or None if absent or expired.

        Raises
        ------
        CacheStoreError
            If the backing store fails.
        """
        try:
            entry = self._store.get(key)
        except Exception as exc:
            raise CacheStoreError(f"Cache read failed for {key}: {exc}", key=key) from exc

        if not isinstance(entry, dict):
            return None
        written_at = entry.get("written_at")
        if not isinstance(written_at, (int, float)) or now_ms() - written_at >= ttl_ms:
            return None
        try:
            return GeoResult.model_validate(entry.get("result"))
        except ValidationError:
            logger.debug("Discarding malformed cache entry %s", key)
            return None

    def set(self, key: str, result: GeoResult, ttl_ms: int) -> None:
        """Store *result* under *key* for *ttl_ms*.

        Raises
        ------
        CacheStoreError
            If the backing store fails.
        """
        entry = {"result": result.model_dump(), "written_at": now_ms()}
        try:
            self._store.set(key, entry, ttl_ms)
        except Exception as exc:
            raise CacheStoreError(f"Cache write failed for {key}: {exc}", key=key) from exc

    def cleanup(self, prefix: str) -> None:
        """Remove every entry whose key starts with *prefix*. Never raises."""
        try:
            removed = self._store.cleanup(prefix)
            logger.debug("Cache cleanup removed %s entries under %s", removed, prefix)
        except Exception:
            logger.warning("Cache cleanup failed for prefix %s", prefix, exc_info=True)

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Group writes so a persistent store saves once when the block exits.

        Stores without a ``batch`` method are written through as usual. A
        failed final save is logged, not raised.
        """
        batch = getattr(self._store, "batch", None)
        if not callable(batch):
            yield
            return
        body_failed = False
        try:
            with batch():
                try:
                    yield
                except BaseException:
                    body_failed = True
                    raise
        except Exception:
            if body_failed:
                raise
            logger.warning("Cache save failed after batch", exc_info=True)
