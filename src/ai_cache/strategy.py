"""Routes live responses to the cache, the jail, or nowhere."""

from __future__ import annotations

from ai_cache.classify import Classification, classify
from ai_cache.config import CacheConfig
from ai_cache.errors import log_exception
from ai_cache.jail import JailManager
from ai_cache.logging import get_logger
from ai_cache.models import GenerateResult
from ai_cache.store import CacheStore

logger = get_logger("strategy")


class CacheStrategy:
    """Applies the caching decision for one live (non-hit) response."""

    def __init__(
        self,
        store: CacheStore,
        jail: JailManager,
        config: CacheConfig | None = None,
    ) -> None:
        self.store = store
        self.jail = jail
        self.config = config or CacheConfig()

    async def handle(self, cache_key: str, result: GenerateResult) -> Classification:
        """Classify ``result`` and store, jail or skip it. Never raises.

        Returns:
            The classification that drove the decision.
        """
        classification = classify(result)
        try:
            if classification is Classification.SUCCESSFUL:
                await self.store.store(cache_key, result)
            elif classification is Classification.PROBLEMATIC:
                await self.jail.record_problematic(cache_key, result)
            elif self.config.enable_logging:
                logger.info(
                    "Not caching response (finish_reason: %s, text_length: %d) for key: %s",
                    result.finish_reason,
                    len(result.text),
                    self.config.truncate_key(cache_key),
                )
        except Exception as e:
            log_exception(logger, "Cache strategy failed", e)
        return classification


__all__ = ["CacheStrategy"]
