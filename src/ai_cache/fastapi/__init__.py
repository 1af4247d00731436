"""FastAPI integration for ai-cache."""

from ai_cache.fastapi.metrics import add_cache_metrics_endpoints
from ai_cache.fastapi.models import CacheEventResponse, CacheSummaryResponse

__all__ = [
    "add_cache_metrics_endpoints",
    "CacheEventResponse",
    "CacheSummaryResponse",
]
