"""In-memory cache backend with TTL and LRU eviction.

This is the simplest and fastest cache backend, suitable for development,
tests and single-process applications. Data is lost when the process exits.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from ai_cache.backends.base import CacheBackend

logger = logging.getLogger(__name__)


class MemoryCacheBackend(CacheBackend):
    """In-memory key-value backend.

    Features:
        - Thread-safe operations
        - Per-key TTL, checked lazily on read
        - LRU eviction when max_entries is reached

    Example:
        >>> from ai_cache.backends import MemoryCacheBackend
        >>>
        >>> backend = MemoryCacheBackend(max_entries=1000)
        >>> await backend.set("ai-cache:abc", '{"text": "hi"}', ttl=60)
        >>> await backend.get("ai-cache:abc")
        '{"text": "hi"}'
    """

    name = "memory"

    def __init__(
        self,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the in-memory backend.

        Args:
            max_entries: Maximum number of keys. When exceeded, the least
                recently used keys are evicted. None = unlimited.
            clock: Time source in seconds, injectable for tests.
        """
        self._data: OrderedDict[str, tuple[str, float]] = OrderedDict()
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.RLock()

    async def get(self, key: str) -> str | None:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self._clock() >= expires_at:
                del self._data[key]
                return None
            self._data.move_to_end(key)
            return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl)
            self._data.move_to_end(key)

            if self._max_entries is not None:
                while len(self._data) > self._max_entries:
                    evicted_key, _ = self._data.popitem(last=False)
                    logger.debug(f"Evicted cache entry: {evicted_key[:50]}...")

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def ttl(self, key: str) -> float | None:
        """Seconds until ``key`` expires, or None if it is not stored."""
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            return max(0.0, item[1] - self._clock())

    def evict_expired(self) -> int:
        """Remove all expired keys.

        Returns:
            Number of keys evicted.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
            for k in expired:
                del self._data[k]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            item = self._data.get(key)
            return item is not None and self._clock() < item[1]

    def __repr__(self) -> str:
        return f"MemoryCacheBackend(entries={len(self)}, max={self._max_entries})"
