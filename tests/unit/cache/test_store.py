"""Tests for CacheStore."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock

import pytest

from ai_cache.config import CacheConfig
from ai_cache.errors import BackendUnavailableError, SerializationError
from ai_cache.models import GenerateResult, Usage
from ai_cache.store import CacheStore

KEY = "ai-cache:" + "a" * 64


@pytest.fixture
def store(backend, config, collector) -> CacheStore:
    return CacheStore(backend, config, collector)


@pytest.fixture
def result() -> GenerateResult:
    return GenerateResult.from_text("Paris", usage=Usage(total_tokens=6), response={"id": "r1"})


class TestStore:
    """Writing envelopes."""

    @pytest.mark.asyncio
    async def test_store_and_get(self, store, result):
        assert await store.store(KEY, result) is True

        envelope = await store.get(KEY)
        assert envelope.text == "Paris"
        assert envelope.usage.total_tokens == 6

    @pytest.mark.asyncio
    async def test_uses_cache_ttl(self, backend, result):
        store = CacheStore(backend, CacheConfig(cache_ttl=120))
        await store.store(KEY, result)
        assert backend.ttl(KEY) == pytest.approx(120, abs=1)

    @pytest.mark.asyncio
    async def test_records_store(self, store, result, collector):
        await store.store(KEY, result)

        assert collector.get_metrics().successful_caches == 1
        event = collector.get_events()[0]
        assert event.type == "store"
        assert event.metadata["response_size"] == 5

    @pytest.mark.asyncio
    async def test_promoted_records_jail_promotion(self, store, result, collector):
        await store.store(KEY, result, promoted=True)

        metrics = collector.get_metrics()
        assert metrics.jail_promotions == 1
        assert metrics.successful_caches == 0

    @pytest.mark.asyncio
    async def test_logs_store(self, store, result, caplog):
        with caplog.at_level(logging.INFO, logger="ai_cache"):
            await store.store(KEY, result)
        assert "Cached successful response for key: ai-cache:aaaaaaaaaaa..." in caplog.text

    @pytest.mark.asyncio
    async def test_logging_disabled(self, backend, result, caplog):
        store = CacheStore(backend, CacheConfig(enable_logging=False))
        with caplog.at_level(logging.INFO, logger="ai_cache"):
            await store.store(KEY, result)
        assert "Cached" not in caplog.text


class TestStoreFailures:
    """A failed write never raises."""

    @pytest.mark.asyncio
    async def test_backend_failure(self, backend, config, collector, result):
        backend.set = AsyncMock(side_effect=BackendUnavailableError("Redis setex failed: connection refused"))
        store = CacheStore(backend, config, collector)

        assert await store.store(KEY, result) is False
        metrics = collector.get_metrics()
        assert metrics.cache_errors == 1
        assert metrics.successful_caches == 0
        assert collector.get_events()[0].metadata["error_type"] == "connection"

    @pytest.mark.asyncio
    async def test_error_response_not_stored(self, store, backend):
        assert await store.store(KEY, GenerateResult.from_text("x", finish_reason="error")) is False
        assert await backend.get(KEY) is None


class TestGet:
    """Reading envelopes."""

    @pytest.mark.asyncio
    async def test_missing(self, store):
        assert await store.get(KEY) is None

    @pytest.mark.asyncio
    async def test_malformed_raises_serialization_error(self, store, backend):
        await backend.set(KEY, "{not json", ttl=60)
        with pytest.raises(SerializationError):
            await store.get(KEY)

    @pytest.mark.asyncio
    async def test_unexpected_backend_error_wrapped(self, backend, config):
        backend.get = AsyncMock(side_effect=RuntimeError("socket closed"))
        store = CacheStore(backend, config)

        with pytest.raises(BackendUnavailableError) as exc_info:
            await store.get(KEY)
        assert exc_info.value.backend == "memory"

    @pytest.mark.asyncio
    async def test_reads_payload_written_elsewhere(self, store, backend):
        await backend.set(KEY, json.dumps({"text": "hi", "finishReason": "stop"}), ttl=60)
        assert (await store.get(KEY)).text == "hi"
