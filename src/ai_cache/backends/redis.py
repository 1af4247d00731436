"""Redis cache backend.

Uses the asyncio client from the ``redis`` package. Values are stored as
strings with ``SETEX`` so every write restarts the key's TTL.

Note:
    Install the client with: pip install redis
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from ai_cache.backends.base import CacheBackend
from ai_cache.config import DEFAULT_REDIS_URL
from ai_cache.errors import BackendUnavailableError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisCacheBackend(CacheBackend):
    """Redis key-value backend.

    Example:
        >>> from ai_cache.backends.redis import RedisCacheBackend
        >>>
        >>> backend = RedisCacheBackend(url="redis://localhost:6379")
        >>> await backend.set("ai-cache:abc", "{}", ttl=86400)

    Example - Reusing an existing client:
        >>> import redis.asyncio as aioredis
        >>> client = aioredis.from_url("redis://cache:6379", decode_responses=True)
        >>> backend = RedisCacheBackend(client=client)
    """

    name = "redis"

    def __init__(
        self,
        url: str = DEFAULT_REDIS_URL,
        *,
        client: Redis | None = None,
        socket_timeout: float | None = 2.0,
        **client_kwargs: Any,
    ) -> None:
        """Initialize the Redis backend.

        The connection is opened lazily on first use.

        Args:
            url: Redis connection URL. Ignored when ``client`` is given.
            client: Pre-configured ``redis.asyncio.Redis`` client. It must be
                created with ``decode_responses=True``.
            socket_timeout: Seconds before a command is treated as failed.
            **client_kwargs: Passed to ``redis.asyncio.from_url``.
        """
        self.url = url
        self._client = client
        self._owns_client = client is None
        self._socket_timeout = socket_timeout
        self._client_kwargs = client_kwargs

    @property
    def client(self) -> Redis:
        if self._client is None:
            import redis.asyncio as aioredis

            self._client = aioredis.from_url(
                self.url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                **self._client_kwargs,
            )
        return self._client

    def _unavailable(self, operation: str, exc: BaseException) -> BackendUnavailableError:
        return BackendUnavailableError(
            f"Redis {operation} failed: {type(exc).__name__}: {exc}",
            backend=self.name,
            operation=operation,
            hint=f"Check that Redis is reachable at {self.url}",
        )

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._unavailable("get", e) from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.client.setex(key, ttl, value)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._unavailable("setex", e) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.client.delete(key))
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise self._unavailable("delete", e) from e

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def __repr__(self) -> str:
        return f"RedisCacheBackend(url={self.url!r})"
