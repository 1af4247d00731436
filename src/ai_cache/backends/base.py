"""Base class for cache backends.

A backend is a plain async key-value store with per-key TTL. The cache and
the cache jail both live in it; entries are opaque strings (JSON).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Abstract base class for cache backend implementations.

    Subclasses must implement:
        - get(): Read a value, ``None`` when missing or expired
        - set(): Write a value with a TTL, replacing any previous value
        - delete(): Remove a key

    Implementations raise ``BackendUnavailableError`` when the store cannot
    be reached. They do not retry; the cache layer fails open instead.

    Example - Implementing a custom backend:
        >>> class DictBackend(CacheBackend):
        ...     def __init__(self):
        ...         self._data = {}
        ...
        ...     async def get(self, key):
        ...         return self._data.get(key)
        ...
        ...     async def set(self, key, value, ttl):
        ...         self._data[key] = value
        ...
        ...     async def delete(self, key):
        ...         return self._data.pop(key, None) is not None
    """

    name: str = "backend"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Read the value stored under ``key``.

        Returns:
            The stored string, or None if the key is missing or expired.
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds.

        Every write replaces the previous value and restarts the TTL.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key existed.
        """
        pass

    async def close(self) -> None:
        """Release connections. Default implementation does nothing."""
        return None

    async def __aenter__(self) -> CacheBackend:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
