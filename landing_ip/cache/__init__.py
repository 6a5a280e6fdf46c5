"""Landing result cache and key-value stores."""

from landing_ip.cache.landing_cache import LandingCache
from landing_ip.cache.store import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "LandingCache",
    "MemoryStore",
]
