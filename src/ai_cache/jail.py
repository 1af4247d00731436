"""Cache jail for problematic responses.

A problematic response (content filter, ``other`` finish reason, warnings)
is not cached right away. Each occurrence for a key bumps a counter kept
under the key's jail entry. The entry's TTL restarts on every update, so
the counter only survives while problems keep arriving. Once the counter
reaches ``jail_threshold`` the current response is written to the main
cache. The jail entry is left to expire on its own.
"""

from __future__ import annotations

import time

from ai_cache.backends.base import CacheBackend
from ai_cache.config import CacheConfig
from ai_cache.errors import SerializationError, log_exception
from ai_cache.key import jail_key_for
from ai_cache.logging import get_logger
from ai_cache.metrics import CacheMetricsCollector
from ai_cache.models import GenerateResult, JailEntry
from ai_cache.store import CacheStore

logger = get_logger("jail")


class JailManager:
    """Counts problematic responses per key and promotes stable ones.

    Example:
        >>> jail = JailManager(backend, store, CacheConfig(jail_threshold=3))
        >>> for _ in range(3):
        ...     await jail.record_problematic(key, filtered_result)
        >>> await store.get(key) is not None
        True
    """

    def __init__(
        self,
        backend: CacheBackend,
        store: CacheStore,
        config: CacheConfig | None = None,
        metrics: CacheMetricsCollector | None = None,
    ) -> None:
        self.backend = backend
        self.store = store
        self.config = config or CacheConfig()
        self.metrics = metrics

    def jail_key(self, cache_key: str) -> str:
        return jail_key_for(
            cache_key,
            cache_prefix=self.config.cache_key_prefix,
            jail_prefix=self.config.jail_key_prefix,
        )

    async def get_entry(self, cache_key: str) -> JailEntry | None:
        """Read the jail entry for a cache key.

        Raises:
            BackendUnavailableError: The backend could not be read.
            SerializationError: The stored entry is malformed.
        """
        raw = await self.backend.get(self.jail_key(cache_key))
        return JailEntry.from_json(raw) if raw else None

    async def record_problematic(self, cache_key: str, result: GenerateResult) -> JailEntry | None:
        """Count one problematic response and promote it at the threshold.

        Never raises.

        Returns:
            The updated jail entry, or None if the update failed.
        """
        short_key = self.config.truncate_key(cache_key)
        start = time.perf_counter()
        try:
            try:
                entry = await self.get_entry(cache_key)
            except SerializationError as e:
                log_exception(logger, f"Discarding malformed jail entry for {short_key}", e)
                if self.metrics is not None:
                    self.metrics.record_error(cache_key, e)
                entry = None

            entry = (entry or JailEntry()).record(result)
            await self.backend.set(self.jail_key(cache_key), entry.to_json(), self.config.jail_ttl)
        except Exception as e:
            log_exception(logger, f"Error managing cache jail for key {short_key}", e)
            if self.metrics is not None:
                self.metrics.record_error(cache_key, e)
            return None

        threshold = self.config.jail_threshold
        if self.metrics is not None:
            self.metrics.record_jail_update(
                cache_key, entry.count, threshold, (time.perf_counter() - start) * 1000
            )
        if self.config.enable_logging:
            logger.info(
                "Cache jail updated for key %s (count: %d/%d)",
                short_key,
                entry.count,
                threshold,
            )

        if entry.count >= threshold:
            if self.config.enable_logging:
                logger.info("Cache jail threshold reached for key %s - promoting to cache", short_key)
            await self.store.store(cache_key, result, promoted=True)

        return entry


__all__ = ["JailManager"]
