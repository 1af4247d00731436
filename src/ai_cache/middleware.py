"""Caching middleware for model calls.

``CacheMiddleware`` sits between the application and a remote model. It
wraps both calling conventions:

- ``wrap_generate(do_generate, params, model_id)`` for single-shot calls
- ``wrap_stream(do_stream, params, model_id)`` for streaming calls

On a hit the cached response is returned (or replayed as a stream) without
calling the model. On a miss the model is called and the response is
classified: successful responses are cached, problematic ones go to the
cache jail, everything else is passed through. Cache failures never fail
the call; the middleware falls back to calling the model directly.

Example - Wrapping a model:
    >>> from ai_cache import CacheMiddleware, MemoryCacheBackend, wrap_model
    >>>
    >>> middleware = CacheMiddleware(MemoryCacheBackend())
    >>> model = wrap_model(my_model, middleware)
    >>> result = await model.generate({"prompt": "What is Python?"})

Example - Using the hooks directly:
    >>> result = await middleware.wrap_generate(
    ...     lambda: client.generate(params),
    ...     params,
    ...     model_id="gpt-4o-mini",
    ... )
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol

from ai_cache.backends.base import CacheBackend
from ai_cache.config import CacheConfig
from ai_cache.errors import BackendUnavailableError, SerializationError, log_exception
from ai_cache.jail import JailManager
from ai_cache.key import CacheKeyGenerator
from ai_cache.logging import get_logger
from ai_cache.metrics import CacheMetricsCollector
from ai_cache.models import (
    ERROR,
    FINISH,
    TEXT_DELTA,
    CachedEnvelope,
    GenerateResult,
    StreamPart,
    StreamResult,
)
from ai_cache.replay import mask_freshness, replay_stream, response_id
from ai_cache.store import CacheStore
from ai_cache.strategy import CacheStrategy

logger = get_logger("middleware")

GenerateFn = Callable[[], Awaitable[GenerateResult]]
StreamFn = Callable[[], Awaitable[StreamResult]]


class LanguageModel(Protocol):
    """What ``CachedModel`` needs from a wrapped model."""

    model_id: str

    async def do_generate(self, params: dict[str, Any]) -> GenerateResult: ...

    async def do_stream(self, params: dict[str, Any]) -> StreamResult: ...


class CacheMiddleware:
    """Response cache with a failure jail for model calls.

    Attributes:
        config: Effective configuration.
        metrics: Collector receiving hit/miss/store/jail/error records, or
            None when metrics are disabled.
        store: Primary cache.
        jail: Jail manager for problematic responses.
        strategy: Routes live responses to the store or the jail.
    """

    def __init__(
        self,
        backend: CacheBackend,
        config: CacheConfig | None = None,
        metrics: CacheMetricsCollector | None = None,
        *,
        key_generator: CacheKeyGenerator | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            backend: Key-value backend holding cache and jail entries.
            config: Cache settings. Defaults to ``CacheConfig()``.
            metrics: Collector to record into. Ignored when
                ``config.enable_metrics`` is false.
            key_generator: Custom key generator. Built from the config if omitted.
        """
        self.config = config or CacheConfig()
        self.backend = backend
        self.metrics = metrics if self.config.enable_metrics else None
        self.key_generator = key_generator or CacheKeyGenerator(
            self.config.cache_key_prefix,
            sort_arrays=self.config.sort_arrays,
        )
        self.store = CacheStore(backend, self.config, self.metrics)
        self.jail = JailManager(backend, self.store, self.config, self.metrics)
        self.strategy = CacheStrategy(self.store, self.jail, self.config)
        self._in_flight: dict[str, asyncio.Future[GenerateResult]] = {}

    @classmethod
    def from_env(
        cls,
        backend: CacheBackend | None = None,
        metrics: CacheMetricsCollector | None = None,
    ) -> CacheMiddleware:
        """Build a middleware from ``AI_CACHE_*`` environment variables.

        Uses a ``RedisCacheBackend`` on ``REDIS_URL`` when no backend is given.
        """
        config = CacheConfig.from_env()
        if backend is None:
            from ai_cache.backends.redis import RedisCacheBackend

            backend = RedisCacheBackend(config.redis_url)
        if metrics is None and config.enable_metrics:
            metrics = CacheMetricsCollector()
        return cls(backend, config, metrics)

    def cache_key(self, params: Any, model_id: str | None = None) -> str:
        """Derive the cache key for a call ("" if caching is unavailable)."""
        return self.key_generator.generate(params, model_id)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    async def wrap_generate(
        self,
        do_generate: GenerateFn,
        params: Any,
        model_id: str | None = None,
    ) -> GenerateResult:
        """Serve a single-shot call from the cache or call the model.

        Exceptions raised by ``do_generate`` propagate unchanged; cache
        failures never do.
        """
        key = self.cache_key(params, model_id)
        if not key:
            self._key_unavailable(model_id)
            return await do_generate()

        envelope, available = await self._lookup(key, "")
        if envelope is not None:
            return mask_freshness(envelope).to_result()
        if not available:
            return await do_generate()

        if self.config.single_flight:
            return await self._single_flight(key, do_generate)
        return await self._generate_and_cache(key, do_generate)

    async def wrap_stream(
        self,
        do_stream: StreamFn,
        params: Any,
        model_id: str | None = None,
    ) -> StreamResult:
        """Serve a streaming call from the cache or call the model.

        On a hit the cached text is replayed as text deltas followed by a
        finish event. On a miss the live stream is passed through unchanged
        and its accumulated result is cached once the stream completes.
        """
        key = self.cache_key(params, model_id)
        if not key:
            self._key_unavailable(model_id)
            return await do_stream()

        envelope, available = await self._lookup(key, "Stream ")
        if envelope is not None:
            masked = mask_freshness(envelope)
            return StreamResult(
                stream=replay_stream(masked, self.config.stream_chunk_size, id=response_id(masked)),
                warnings=list(masked.warnings or []),
                raw_call=masked.raw_call,
                raw_response=masked.raw_response,
                response=masked.response,
            )

        result = await do_stream()
        if not available:
            return result
        return dataclasses.replace(result, stream=self._cache_stream(key, result))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _lookup(self, key: str, label: str) -> tuple[CachedEnvelope | None, bool]:
        """Probe the cache and record the outcome.

        Returns:
            ``(envelope, available)``. ``available`` is False when the
            backend could not be read, in which case the call is passed
            through without caching.
        """
        short_key = self.config.truncate_key(key)
        start = time.perf_counter()
        try:
            envelope = await self.store.get(key)
        except SerializationError as e:
            log_exception(logger, f"Discarding corrupt cache entry for key {short_key}", e)
            self._record_error(key, e)
            envelope = None
        except BackendUnavailableError as e:
            log_exception(logger, f"{label}Cache unavailable, passing through", e, include_traceback=False)
            self._record_error(key, e)
            return None, False
        except Exception as e:
            log_exception(logger, f"Unexpected {label.lower()}cache lookup failure", e)
            self._record_error(key, e)
            return None, False

        duration_ms = (time.perf_counter() - start) * 1000
        if envelope is not None:
            if self.metrics is not None:
                self.metrics.record_hit(key, envelope.size, duration_ms)
            if self.config.enable_logging:
                logger.info("%sCache HIT for key: %s", label, short_key)
            return envelope, True

        if self.metrics is not None:
            self.metrics.record_miss(key, duration_ms)
        if self.config.enable_logging:
            logger.info("%sCache MISS for key: %s", label, short_key)
        return None, True

    async def _generate_and_cache(self, key: str, do_generate: GenerateFn) -> GenerateResult:
        result = await do_generate()
        await self.strategy.handle(key, result)
        return result

    async def _single_flight(self, key: str, do_generate: GenerateFn) -> GenerateResult:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._generate_and_cache(key, do_generate))
            self._in_flight[key] = task

            def _done(finished: asyncio.Future[GenerateResult]) -> None:
                if self._in_flight.get(key) is finished:
                    del self._in_flight[key]

            task.add_done_callback(_done)
        # A cancelled waiter must not cancel the call other waiters share
        return await asyncio.shield(task)

    async def _cache_stream(self, key: str, result: StreamResult) -> AsyncIterator[StreamPart]:
        text: list[str] = []
        finish_reason = "stop"
        usage = None
        errored = False
        handled = False

        async def _handle() -> None:
            generated = GenerateResult.from_text(
                "".join(text),
                finish_reason=ERROR if errored else finish_reason,
                usage=usage,
                warnings=list(result.warnings or []),
                raw_call=result.raw_call,
                raw_response=result.raw_response,
                response=result.response,
            )
            await self.strategy.handle(key, generated)

        async for part in result.stream:
            if part.type == TEXT_DELTA and part.delta:
                text.append(part.delta)
            elif part.type == FINISH and not handled:
                finish_reason = part.finish_reason or "stop"
                usage = part.usage
                # Handled before forwarding: consumers may stop reading at finish
                handled = True
                await _handle()
            elif part.type == ERROR:
                errored = True
            yield part

        # Streams that end without a finish part are handled on exhaustion
        if not handled:
            await _handle()

    def _key_unavailable(self, model_id: str | None) -> None:
        logger.warning("Caching unavailable for call to model %s: no cache key", model_id or "unknown")
        self._record_error("", "key derivation failed")

    def _record_error(self, key: str, error: str | BaseException) -> None:
        if self.metrics is not None:
            self.metrics.record_error(key, error)


class CachedModel:
    """A model whose ``generate``/``stream`` calls go through the cache.

    The wrapper keeps the wrapped model's calling convention: ``generate``
    returns a ``GenerateResult`` and ``stream`` a ``StreamResult``.
    """

    def __init__(self, model: LanguageModel, middleware: CacheMiddleware) -> None:
        self.model = model
        self.middleware = middleware

    @property
    def model_id(self) -> str:
        return self.model.model_id

    async def generate(self, params: dict[str, Any]) -> GenerateResult:
        return await self.middleware.wrap_generate(
            lambda: self.model.do_generate(params), params, self.model_id
        )

    async def stream(self, params: dict[str, Any]) -> StreamResult:
        return await self.middleware.wrap_stream(
            lambda: self.model.do_stream(params), params, self.model_id
        )

    def __repr__(self) -> str:
        return f"CachedModel(model_id={self.model_id!r})"


def wrap_model(model: LanguageModel, middleware: CacheMiddleware) -> CachedModel:
    """Wrap ``model`` so its calls use ``middleware``."""
    return CachedModel(model, middleware)


__all__ = [
    "CacheMiddleware",
    "CachedModel",
    "GenerateFn",
    "LanguageModel",
    "StreamFn",
    "wrap_model",
]
