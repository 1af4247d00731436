"""FastAPI models for cache metrics endpoints."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class CacheSummaryResponse(BaseModel):
    """Counters and gauges of a ``CacheMetricsCollector``."""

    counters: Dict[str, int] = Field(..., description="Monotonic counters by metric name")
    gauges: Dict[str, float] = Field(..., description="Current gauge values by metric name")
    collection_info: Dict[str, Any] = Field(
        default_factory=dict, description="Event count and time of this snapshot"
    )


class CacheEventResponse(BaseModel):
    """One recorded cache operation."""

    type: str = Field(..., description="hit, miss, store, jail_update, jail_promotion or error")
    cache_key: str = Field(..., description="Cache key the operation was about")
    timestamp: int = Field(..., description="Epoch milliseconds")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    error_type: Optional[str] = Field(None, description="Error bucket for error events")
