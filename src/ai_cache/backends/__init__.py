"""Cache backend implementations.

- MemoryCacheBackend: In-process dict with TTL and LRU eviction
- RedisCacheBackend: Redis via ``redis.asyncio`` (requires the redis package)

Example:
    >>> from ai_cache.backends import create_backend
    >>>
    >>> backend = create_backend("redis", url="redis://localhost:6379")
"""

from __future__ import annotations

from typing import Any, Literal

from ai_cache.backends.base import CacheBackend
from ai_cache.backends.memory import MemoryCacheBackend
from ai_cache.errors import ConfigurationError


def create_backend(
    backend_type: Literal["memory", "redis"] = "memory",
    **kwargs: Any,
) -> CacheBackend:
    """Create a backend by name.

    Raises:
        ConfigurationError: For unknown backend names or a missing client library.
    """
    if backend_type == "memory":
        return MemoryCacheBackend(**kwargs)
    if backend_type == "redis":
        try:
            from ai_cache.backends.redis import RedisCacheBackend
        except ImportError as e:
            raise ConfigurationError(
                f"Failed to import backend 'redis': {e}",
                setting="backend",
                hint="Install the client with: pip install redis",
            ) from e
        return RedisCacheBackend(**kwargs)
    raise ConfigurationError(f"Unknown backend type: {backend_type}", setting="backend")


__all__ = [
    "CacheBackend",
    "MemoryCacheBackend",
    "create_backend",
]
