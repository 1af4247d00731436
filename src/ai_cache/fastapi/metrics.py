"""FastAPI endpoints exposing cache metrics."""

from typing import Callable, List, Optional

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST

from ai_cache.fastapi.models import CacheEventResponse, CacheSummaryResponse
from ai_cache.metrics import CacheMetricsCollector


def add_cache_metrics_endpoints(
    router: APIRouter,
    collector: Optional[CacheMetricsCollector] = None,
    *,
    path: str = "/metrics",
    get_collector: Optional[Callable[[], CacheMetricsCollector]] = None,
) -> None:
    """
    Add cache metrics endpoints to any FastAPI router.

    Bring your router and the collector you passed to the middleware:
        router = APIRouter()
        metrics = CacheMetricsCollector()
        middleware = CacheMiddleware(backend, metrics=metrics)
        add_cache_metrics_endpoints(router, metrics)

    Adds three routes:
        GET {path}           Prometheus text exposition
        GET {path}/summary   Counters and gauges as JSON
        GET {path}/events    Recent events, most recent first (?limit=N, 0 = all)

    Args:
        router: FastAPI APIRouter
        collector: Metrics collector (or None if using get_collector)
        path: Base path (default: /metrics)
        get_collector: Optional function returning the collector per request
    """
    base = path.rstrip("/") or ""

    def _collector() -> CacheMetricsCollector:
        current = get_collector() if get_collector else collector
        if current is None:
            raise ValueError("No collector provided. Pass collector= or get_collector=")
        return current

    @router.get(base or "/", response_class=PlainTextResponse)
    async def prometheus_metrics():
        return PlainTextResponse(_collector().prometheus_text(), media_type=CONTENT_TYPE_LATEST)

    @router.get(f"{base}/summary", response_model=CacheSummaryResponse)
    async def metrics_summary():
        return CacheSummaryResponse(**_collector().summary())

    @router.get(f"{base}/events", response_model=List[CacheEventResponse])
    async def metrics_events(limit: int = Query(100, ge=0, le=10000)):
        return [
            CacheEventResponse(
                **event.to_dict(),
                error_type=event.metadata.get("error_type") if event.type == "error" else None,
            )
            for event in _collector().get_events(limit)
        ]
