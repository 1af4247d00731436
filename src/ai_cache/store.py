"""Cache store: reads and writes ``CachedEnvelope``s in the backend."""

from __future__ import annotations

import time

from ai_cache.backends.base import CacheBackend
from ai_cache.config import CacheConfig
from ai_cache.errors import AICacheError, BackendUnavailableError, log_exception
from ai_cache.logging import get_logger
from ai_cache.metrics import CacheMetricsCollector
from ai_cache.models import CachedEnvelope, GenerateResult

logger = get_logger("store")


class CacheStore:
    """Primary response cache.

    ``get()`` reports failures to the caller so it can decide between a miss
    and a pass-through. ``store()`` never raises: a failed write only means
    the response is not cached.

    Example:
        >>> store = CacheStore(MemoryCacheBackend(), CacheConfig())
        >>> await store.store("ai-cache:abc", GenerateResult.from_text("hi"))
        True
        >>> (await store.get("ai-cache:abc")).text
        'hi'
    """

    def __init__(
        self,
        backend: CacheBackend,
        config: CacheConfig | None = None,
        metrics: CacheMetricsCollector | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or CacheConfig()
        self.metrics = metrics

    async def get(self, key: str) -> CachedEnvelope | None:
        """Read the envelope stored under ``key``.

        Raises:
            BackendUnavailableError: The backend could not be read.
            SerializationError: The stored value is not a valid envelope.
        """
        try:
            raw = await self.backend.get(key)
        except AICacheError:
            raise
        except Exception as e:
            raise BackendUnavailableError(
                f"Cache read failed: {type(e).__name__}: {e}",
                backend=self.backend.name,
                operation="get",
            ) from e

        if not raw:
            return None
        return CachedEnvelope.from_json(raw)

    async def store(self, key: str, result: GenerateResult, *, promoted: bool = False) -> bool:
        """Write ``result`` under ``key`` with the cache TTL.

        Args:
            key: Cache key.
            result: The live response to cache.
            promoted: The response is a problematic one leaving the jail;
                recorded as a jail promotion instead of a plain store.

        Returns:
            True if the write succeeded.
        """
        start = time.perf_counter()
        try:
            envelope = CachedEnvelope.from_result(result)
            await self.backend.set(key, envelope.to_json(), self.config.cache_ttl)
        except Exception as e:
            log_exception(
                logger,
                f"Error storing response in cache for key {self.config.truncate_key(key)}",
                e,
                include_traceback=False,
            )
            if self.metrics is not None:
                self.metrics.record_error(key, e)
            return False

        duration_ms = (time.perf_counter() - start) * 1000
        if self.metrics is not None:
            if promoted:
                self.metrics.record_jail_promotion(key, envelope.size, duration_ms)
            else:
                self.metrics.record_store(key, envelope.size, duration_ms)

        if self.config.enable_logging:
            kind = "problematic response after jail threshold" if promoted else "successful response"
            logger.info("Cached %s for key: %s", kind, self.config.truncate_key(key))
        return True


__all__ = ["CacheStore"]
