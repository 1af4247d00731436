"""
Root conftest.py for ai-cache tests.

This file provides:
1. Common pytest markers for test categorization
2. Shared fixtures: backends, config, metrics collector
3. A fake language model that counts its calls

Fixtures are organized by category:
- Environment fixtures (AI_CACHE_* isolation)
- Cache fixtures (backend, config, collector, middleware)
- Model fixtures (fake model, stream helpers)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest

from ai_cache.backends.memory import MemoryCacheBackend
from ai_cache.config import ENV_VARS, CacheConfig
from ai_cache.metrics import CacheMetricsCollector
from ai_cache.middleware import CacheMiddleware
from ai_cache.models import GenerateResult, StreamPart, StreamResult, Usage

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        norm = str(item.fspath).replace("\\", "/")
        if "/tests/integration/" in norm:
            item.add_marker(pytest.mark.integration)
        if "stream" in norm or "replay" in norm:
            item.add_marker(pytest.mark.streaming)


def pytest_configure(config):
    """Register custom markers."""
    for name, desc in [
        ("integration", "Integration tests requiring a running Redis"),
        ("streaming", "Streaming and replay tests"),
        ("slow", "Slow-running tests"),
    ]:
        config.addinivalue_line("markers", f"{name}: {desc}")


# =============================================================================
# ENVIRONMENT FIXTURES
# =============================================================================


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every AI_CACHE_* variable so defaults apply."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


# =============================================================================
# CACHE FIXTURES
# =============================================================================


@pytest.fixture
def backend() -> MemoryCacheBackend:
    """In-memory backend for testing."""
    return MemoryCacheBackend()


@pytest.fixture
def config() -> CacheConfig:
    """Default config with logging on."""
    return CacheConfig()


@pytest.fixture
def collector() -> CacheMetricsCollector:
    """Fresh collector with its own Prometheus registry."""
    return CacheMetricsCollector()


@pytest.fixture
def middleware(backend, config, collector) -> CacheMiddleware:
    """Middleware over the memory backend with metrics enabled."""
    return CacheMiddleware(backend, config, collector)


# =============================================================================
# MODEL FIXTURES
# =============================================================================


async def iter_parts(parts: list[StreamPart]) -> AsyncIterator[StreamPart]:
    """Async iterator over a fixed list of stream parts."""
    for part in parts:
        yield part


def text_stream_parts(text: str, *, finish_reason: str = "stop", chunk: int = 3) -> list[StreamPart]:
    """Text deltas for ``text`` followed by one finish part."""
    parts = [StreamPart.text_delta(text[i : i + chunk], id="live-1") for i in range(0, len(text), chunk)]
    parts.append(StreamPart.finish(finish_reason, Usage(prompt_tokens=3, completion_tokens=4, total_tokens=7)))
    return parts


class FakeModel:
    """Language model double that returns canned results and counts calls.

    Usage:
        model = FakeModel(GenerateResult.from_text("Paris"))
        await model.do_generate({"prompt": "Capital of France?"})
        assert model.generate_calls == 1
    """

    def __init__(
        self,
        result: GenerateResult | None = None,
        stream_parts: list[StreamPart] | None = None,
        *,
        model_id: str = "fake-model",
    ):
        self.model_id = model_id
        self.result = result or GenerateResult.from_text(
            "Paris",
            usage=Usage(prompt_tokens=5, completion_tokens=1, total_tokens=6),
            response={"id": "resp-1", "modelId": model_id, "timestamp": "2024-01-01T00:00:00+00:00"},
        )
        self.stream_parts = stream_parts if stream_parts is not None else text_stream_parts("hello world")
        self.generate_calls = 0
        self.stream_calls = 0

    async def do_generate(self, params: dict[str, Any]) -> GenerateResult:
        self.generate_calls += 1
        return self.result

    async def do_stream(self, params: dict[str, Any]) -> StreamResult:
        self.stream_calls += 1
        return StreamResult(
            stream=iter_parts(list(self.stream_parts)),
            response={"id": "resp-stream", "modelId": self.model_id},
        )


@pytest.fixture
def fake_model() -> FakeModel:
    """Fake model returning a successful "Paris" answer."""
    return FakeModel()


@pytest.fixture
def make_model():
    """Factory for fake models: ``make_model(result=..., stream_parts=...)``."""
    return FakeModel


@pytest.fixture
def make_stream_parts():
    """Factory for live stream parts: ``make_stream_parts("text", finish_reason=...)``."""
    return text_stream_parts
