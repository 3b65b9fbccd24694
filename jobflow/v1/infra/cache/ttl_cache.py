"""
In-process TTL cache with hit/miss accounting.
"""

import threading
from typing import Any

from cachetools import TTLCache

_MISSING = object()


class StatsTTLCache:
    """
    A ``cachetools.TTLCache`` that also counts hits and misses.

    Each instance owns its own eviction policy; the cache registry only
    addresses caches by name.
    """

    def __init__(self, ttl_s: int = 3600, max_size: int = 1024):
        self.ttl_s = ttl_s
        self.max_size = max_size
        self._data: TTLCache = TTLCache(maxsize=max_size, ttl=ttl_s)
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                self._misses += 1
                return default
            self._hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        """Remove one key. Returns False when it was absent or already expired."""
        with self._lock:
            return self._data.pop(key, _MISSING) is not _MISSING

    def flush_all(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0

    def keys(self) -> list[str]:
        with self._lock:
            self._data.expire()
            return list(self._data.keys())

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            self._data.expire()
            return {
                "hits": self._hits,
                "misses": self._misses,
                "key_count": len(self._data),
                "max_size": self.max_size,
                "ttl_s": self.ttl_s,
            }
