"""Tests for the cache jail."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from ai_cache.backends.memory import MemoryCacheBackend
from ai_cache.config import CacheConfig
from ai_cache.errors import BackendUnavailableError
from ai_cache.jail import JailManager
from ai_cache.models import GenerateResult, JailEntry
from ai_cache.store import CacheStore

KEY = "ai-cache:" + "b" * 64
JAIL_KEY = "ai-jail:" + "b" * 64


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def filtered() -> GenerateResult:
    return GenerateResult.from_text("I can only partly answer", finish_reason="content-filter")


def make_jail(backend, collector=None, **config) -> tuple[JailManager, CacheStore]:
    cfg = CacheConfig(**config)
    store = CacheStore(backend, cfg, collector)
    return JailManager(backend, store, cfg, collector), store


class TestJailKey:
    def test_jail_key(self, backend):
        jail, _ = make_jail(backend)
        assert jail.jail_key(KEY) == JAIL_KEY

    def test_custom_prefixes(self, backend):
        jail, _ = make_jail(backend, cache_key_prefix="app", jail_key_prefix="quarantine")
        assert jail.jail_key("app:123") == "quarantine:123"


class TestThreshold:
    """Promotion happens exactly at the threshold."""

    @pytest.mark.asyncio
    async def test_below_threshold_not_cached(self, backend, filtered):
        jail, store = make_jail(backend)

        await jail.record_problematic(KEY, filtered)
        await jail.record_problematic(KEY, filtered)

        assert await store.get(KEY) is None
        assert (await jail.get_entry(KEY)).count == 2

    @pytest.mark.asyncio
    async def test_at_threshold_cached(self, backend, filtered):
        jail, store = make_jail(backend)

        for _ in range(3):
            entry = await jail.record_problematic(KEY, filtered)

        assert entry.count == 3
        envelope = await store.get(KEY)
        assert envelope.text == "I can only partly answer"
        assert envelope.finish_reason == "content-filter"

    @pytest.mark.asyncio
    async def test_threshold_one(self, backend, filtered):
        jail, store = make_jail(backend, jail_threshold=1)
        await jail.record_problematic(KEY, filtered)
        assert await store.get(KEY) is not None

    @pytest.mark.asyncio
    async def test_entry_kept_after_promotion(self, backend, filtered):
        jail, _ = make_jail(backend)
        for _ in range(3):
            await jail.record_problematic(KEY, filtered)
        assert (await jail.get_entry(KEY)).count == 3

    @pytest.mark.asyncio
    async def test_metrics(self, backend, collector, filtered):
        jail, _ = make_jail(backend, collector)
        for _ in range(3):
            await jail.record_problematic(KEY, filtered)

        metrics = collector.get_metrics()
        assert metrics.problematic_responses == 3
        assert metrics.jail_promotions == 1
        assert metrics.successful_caches == 0

        updates = [e for e in collector.get_events() if e.type == "jail_update"]
        assert [e.metadata["count"] for e in updates] == [3, 2, 1]
        assert all(e.metadata["threshold"] == 3 for e in updates)


class TestSlidingWindow:
    """The jail TTL restarts on every update."""

    @pytest.mark.asyncio
    async def test_ttl_refreshed(self, filtered):
        clock = FakeClock()
        backend = MemoryCacheBackend(clock=clock)
        jail, store = make_jail(backend, jail_ttl=100)

        await jail.record_problematic(KEY, filtered)
        clock.now = 90
        await jail.record_problematic(KEY, filtered)
        clock.now = 180
        await jail.record_problematic(KEY, filtered)

        assert await store.get(KEY) is not None

    @pytest.mark.asyncio
    async def test_expired_entry_starts_over(self, filtered):
        clock = FakeClock()
        backend = MemoryCacheBackend(clock=clock)
        jail, store = make_jail(backend, jail_ttl=100)

        await jail.record_problematic(KEY, filtered)
        await jail.record_problematic(KEY, filtered)
        clock.now = 101
        entry = await jail.record_problematic(KEY, filtered)

        assert entry.count == 1
        assert await store.get(KEY) is None


class TestFailures:
    """Jail updates never raise."""

    @pytest.mark.asyncio
    async def test_malformed_entry_replaced(self, backend, collector, filtered):
        jail, _ = make_jail(backend, collector)
        await backend.set(JAIL_KEY, "garbage", ttl=60)

        entry = await jail.record_problematic(KEY, filtered)

        assert entry.count == 1
        assert JailEntry.from_json(await backend.get(JAIL_KEY)).count == 1
        assert collector.get_metrics().cache_errors == 1

    @pytest.mark.asyncio
    async def test_backend_failure(self, backend, collector, filtered):
        backend.set = AsyncMock(side_effect=BackendUnavailableError("Redis setex failed: timeout"))
        jail, _ = make_jail(backend, collector)

        assert await jail.record_problematic(KEY, filtered) is None
        metrics = collector.get_metrics()
        assert metrics.cache_errors == 1
        assert metrics.problematic_responses == 0
