"""Tests for FastAPI cache metrics endpoints."""

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient
from prometheus_client import CONTENT_TYPE_LATEST

from ai_cache import CacheMetricsCollector
from ai_cache.fastapi import add_cache_metrics_endpoints


@pytest.fixture
def collector():
    """Collector with a few recorded operations."""
    collector = CacheMetricsCollector()
    collector.record_miss("ai-cache:1")
    collector.record_store("ai-cache:1", 5)
    collector.record_hit("ai-cache:1", 5)
    collector.record_error("ai-cache:2", "Connection refused")
    return collector


@pytest.fixture
def client(collector):
    app = FastAPI()
    router = APIRouter()
    add_cache_metrics_endpoints(router, collector)
    app.include_router(router)
    return TestClient(app)


def test_routes_added():
    """Test all three routes are registered."""
    router = APIRouter()
    add_cache_metrics_endpoints(router, CacheMetricsCollector())

    routes = [r.path for r in router.routes]
    assert "/metrics" in routes
    assert "/metrics/summary" in routes
    assert "/metrics/events" in routes


def test_custom_path():
    """Test custom base path."""
    router = APIRouter()
    add_cache_metrics_endpoints(router, CacheMetricsCollector(), path="/internal/cache/")

    routes = [r.path for r in router.routes]
    assert "/internal/cache" in routes
    assert "/internal/cache/summary" in routes


def test_prometheus_text(client):
    """Test Prometheus exposition."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"] == CONTENT_TYPE_LATEST
    assert "ai_cache_hits_total 1.0" in response.text
    assert 'ai_cache_errors_total{error_type="connection"} 1.0' in response.text


def test_summary(client):
    """Test JSON summary."""
    data = client.get("/metrics/summary").json()

    assert data["counters"]["ai_cache_hits_total"] == 1
    assert data["counters"]["ai_cache_misses_total"] == 1
    assert data["counters"]["ai_cache_stores_total"] == 1
    assert data["counters"]["ai_cache_errors_total"] == 1
    assert data["gauges"]["ai_cache_hit_rate"] == 0.5
    assert data["collection_info"]["total_events"] == 4


def test_events(client):
    """Test recent events, most recent first."""
    data = client.get("/metrics/events").json()

    assert [e["type"] for e in data] == ["error", "hit", "store", "miss"]
    assert data[0]["error_type"] == "connection"
    assert data[1]["error_type"] is None
    assert data[1]["metadata"] == {"response_size": 5}


def test_events_limit(client):
    """Test limit query parameter."""
    data = client.get("/metrics/events", params={"limit": 2}).json()
    assert len(data) == 2
    assert len(client.get("/metrics/events", params={"limit": 0}).json()) == 4

    assert client.get("/metrics/events", params={"limit": -1}).status_code == 422


def test_dynamic_collector():
    """Test collector resolved per request."""
    collectors = [CacheMetricsCollector()]
    app = FastAPI()
    router = APIRouter()
    add_cache_metrics_endpoints(router, get_collector=lambda: collectors[-1])
    app.include_router(router)
    client = TestClient(app)

    collectors.append(CacheMetricsCollector())
    collectors[-1].record_miss("k")

    assert client.get("/metrics/summary").json()["counters"]["ai_cache_misses_total"] == 1
