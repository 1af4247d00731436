"""Cache metrics and event bus.

``CacheMetricsCollector`` keeps point-in-time counters, a bounded ring
buffer of recent ``CacheEvent``s, and Prometheus instruments in its own
``CollectorRegistry``. Create one collector per process (or per test) and
pass it to the middleware; nothing here is a module-level singleton.

Example:
    >>> from ai_cache.metrics import CacheMetricsCollector
    >>>
    >>> metrics = CacheMetricsCollector()
    >>> unsubscribe = metrics.on_event(lambda e: print(e.type, e.cache_key))
    >>> metrics.record_miss("ai-cache:abc")
    miss ai-cache:abc
    >>> metrics.get_metrics().hit_rate
    0.0
    >>> print(metrics.prometheus_text())
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from ai_cache.errors import log_exception
from ai_cache.logging import get_logger
from ai_cache.models import now_ms

logger = get_logger("metrics")

DEFAULT_MAX_EVENTS = 1000

EventType = Literal["hit", "miss", "store", "jail_update", "jail_promotion", "error"]

ERROR_TYPES = ("timeout", "connection", "redis", "parse", "auth", "unknown")

_SIZE_BUCKETS = (16, 64, 256, 1024, 4096, 16384, 65536, 262144, 1048576)
_DURATION_BUCKETS = (0.5, 1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000)


@dataclass
class CacheEvent:
    """One recorded cache operation.

    Attributes:
        type: What happened.
        cache_key: Key the operation was about ("" if none could be derived).
        timestamp: Epoch milliseconds.
        metadata: Operation specific details (sizes, counts, error text).
    """

    type: EventType
    cache_key: str
    timestamp: int = field(default_factory=now_ms)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CacheMetrics:
    """Point-in-time counters."""

    cache_hits: int = 0
    cache_misses: int = 0
    successful_caches: int = 0
    problematic_responses: int = 0
    jail_promotions: int = 0
    cache_errors: int = 0
    hit_rate: float = 0.0
    avg_response_size: float = 0.0
    total_responses: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


MetricsHook = Callable[[CacheMetrics], None]
EventHook = Callable[[CacheEvent], None]


class CacheMetricsCollector:
    """Records cache operations as counters, Prometheus samples and events.

    Subscriber callbacks run synchronously after each recording. A callback
    that raises is logged and skipped; it never breaks the recorder or the
    other subscribers.
    """

    def __init__(
        self,
        max_events: int = DEFAULT_MAX_EVENTS,
        registry: CollectorRegistry | None = None,
    ) -> None:
        """Initialize the collector.

        Args:
            max_events: Capacity of the recent-events ring buffer.
            registry: Prometheus registry for the instruments. A private
                registry is created when omitted.
        """
        if max_events < 1:
            raise ValueError(f"max_events must be >= 1, got {max_events}")
        self.max_events = max_events
        self._lock = threading.Lock()
        self._metrics_hooks: list[MetricsHook] = []
        self._event_hooks: list[EventHook] = []
        self._external_registry = registry
        self._reset_state()

    def _reset_state(self) -> None:
        self._metrics = CacheMetrics()
        self._total_response_size = 0
        self._sized_hits = 0
        self._events: deque[CacheEvent] = deque(maxlen=self.max_events)
        if self._external_registry is None or not hasattr(self, "registry"):
            self.registry = self._external_registry or CollectorRegistry()
            self._init_instruments()

    def _init_instruments(self) -> None:
        r = self.registry
        self._hits = Counter("ai_cache_hits_total", "Total number of AI cache hits", registry=r)
        self._misses = Counter("ai_cache_misses_total", "Total number of AI cache misses", registry=r)
        self._stores = Counter(
            "ai_cache_stores_total", "Total number of successful cache stores", registry=r
        )
        self._jail_updates = Counter(
            "ai_cache_jail_updates_total", "Total number of problematic responses jailed", registry=r
        )
        self._jail_promotions = Counter(
            "ai_cache_jail_promotions_total",
            "Total number of jail promotions (problematic responses cached)",
            registry=r,
        )
        self._errors = Counter(
            "ai_cache_errors_total",
            "Total number of cache operation errors",
            ["error_type"],
            registry=r,
        )
        for error_type in ERROR_TYPES:
            self._errors.labels(error_type=error_type)
        self._hit_rate = Gauge("ai_cache_hit_rate", "Current cache hit rate (0-1)", registry=r)
        self._avg_size = Gauge(
            "ai_cache_avg_response_size", "Average cached response size in characters", registry=r
        )
        self._response_size = Histogram(
            "ai_cache_response_size_bytes",
            "Distribution of AI response sizes",
            ["operation"],
            buckets=_SIZE_BUCKETS,
            registry=r,
        )
        self._duration = Histogram(
            "ai_cache_operation_duration_ms",
            "Duration of cache operations in milliseconds",
            ["operation"],
            buckets=_DURATION_BUCKETS,
            registry=r,
        )

    # -------------------------------------------------------------------------
    # Recorders
    # -------------------------------------------------------------------------

    def record_hit(
        self,
        cache_key: str,
        response_size: int | None = None,
        duration_ms: float | None = None,
    ) -> None:
        with self._lock:
            self._metrics.cache_hits += 1
            self._metrics.total_responses += 1
            if response_size is not None:
                self._total_response_size += response_size
                self._sized_hits += 1
                self._metrics.avg_response_size = self._total_response_size / self._sized_hits
                self._avg_size.set(self._metrics.avg_response_size)
            self._update_hit_rate()

        self._hits.inc()
        if response_size is not None:
            self._response_size.labels(operation="hit").observe(response_size)
        self._observe_duration("hit", duration_ms)

        self._add_event(CacheEvent("hit", cache_key, metadata={"response_size": response_size}))
        self._notify_metrics_hooks()

    def record_miss(self, cache_key: str, duration_ms: float | None = None) -> None:
        with self._lock:
            self._metrics.cache_misses += 1
            self._metrics.total_responses += 1
            self._update_hit_rate()

        self._misses.inc()
        self._observe_duration("miss", duration_ms)

        self._add_event(CacheEvent("miss", cache_key))
        self._notify_metrics_hooks()

    def record_store(
        self,
        cache_key: str,
        response_size: int,
        duration_ms: float | None = None,
    ) -> None:
        with self._lock:
            self._metrics.successful_caches += 1

        self._stores.inc()
        self._response_size.labels(operation="store").observe(response_size)
        self._observe_duration("store", duration_ms)

        self._add_event(CacheEvent("store", cache_key, metadata={"response_size": response_size}))
        self._notify_metrics_hooks()

    def record_jail_update(
        self,
        cache_key: str,
        count: int,
        threshold: int,
        duration_ms: float | None = None,
    ) -> None:
        with self._lock:
            self._metrics.problematic_responses += 1

        self._jail_updates.inc()
        self._observe_duration("jail_update", duration_ms)

        self._add_event(
            CacheEvent("jail_update", cache_key, metadata={"count": count, "threshold": threshold})
        )
        self._notify_metrics_hooks()

    def record_jail_promotion(
        self,
        cache_key: str,
        response_size: int,
        duration_ms: float | None = None,
    ) -> None:
        with self._lock:
            self._metrics.jail_promotions += 1

        self._jail_promotions.inc()
        self._response_size.labels(operation="jail_promotion").observe(response_size)
        self._observe_duration("jail_promotion", duration_ms)

        self._add_event(
            CacheEvent("jail_promotion", cache_key, metadata={"response_size": response_size})
        )
        self._notify_metrics_hooks()

    def record_error(self, cache_key: str, error: str | BaseException) -> None:
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        error_type = self.categorize_error(message)

        with self._lock:
            self._metrics.cache_errors += 1

        self._errors.labels(error_type=error_type).inc()

        self._add_event(
            CacheEvent("error", cache_key, metadata={"error": message, "error_type": error_type})
        )
        self._notify_metrics_hooks()

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def get_metrics(self) -> CacheMetrics:
        """Return a copy of the current counters."""
        with self._lock:
            return CacheMetrics(**asdict(self._metrics))

    def get_events(self, limit: int | None = None) -> list[CacheEvent]:
        """Return recent events, most recent first.

        Args:
            limit: Maximum number of events. None or 0 = the whole buffer.
        """
        with self._lock:
            events = list(reversed(self._events))
        if limit and limit > 0:
            return events[:limit]
        return events

    def summary(self) -> dict[str, Any]:
        """Counters and gauges as a JSON-friendly dict."""
        m = self.get_metrics()
        with self._lock:
            event_count = len(self._events)
        return {
            "counters": {
                "ai_cache_hits_total": m.cache_hits,
                "ai_cache_misses_total": m.cache_misses,
                "ai_cache_stores_total": m.successful_caches,
                "ai_cache_jail_updates_total": m.problematic_responses,
                "ai_cache_jail_promotions_total": m.jail_promotions,
                "ai_cache_errors_total": m.cache_errors,
            },
            "gauges": {
                "ai_cache_hit_rate": m.hit_rate,
                "ai_cache_avg_response_size": m.avg_response_size,
            },
            "collection_info": {
                "total_events": event_count,
                "last_updated": datetime.now(timezone.utc).isoformat(),
            },
        }

    def prometheus_text(self) -> str:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry).decode("utf-8")

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def on_metrics_update(self, callback: MetricsHook) -> Callable[[], None]:
        """Call ``callback`` with a metrics snapshot after every recording.

        Returns:
            A function that removes the subscription.
        """
        self._metrics_hooks.append(callback)
        return lambda: self._remove(self._metrics_hooks, callback)

    def on_event(self, callback: EventHook) -> Callable[[], None]:
        """Call ``callback`` with every new event.

        Returns:
            A function that removes the subscription.
        """
        self._event_hooks.append(callback)
        return lambda: self._remove(self._event_hooks, callback)

    @staticmethod
    def _remove(hooks: list[Any], callback: Any) -> None:
        if callback in hooks:
            hooks.remove(callback)

    def reset(self) -> None:
        """Clear counters and events. Subscribers stay registered.

        Prometheus instruments are recreated unless an external registry
        was supplied, in which case their values keep accumulating.
        """
        with self._lock:
            self._reset_state()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _update_hit_rate(self) -> None:
        # caller holds the lock
        total = self._metrics.cache_hits + self._metrics.cache_misses
        self._metrics.hit_rate = self._metrics.cache_hits / total if total > 0 else 0.0
        self._hit_rate.set(self._metrics.hit_rate)

    def _observe_duration(self, operation: str, duration_ms: float | None) -> None:
        if duration_ms is not None:
            self._duration.labels(operation=operation).observe(duration_ms)

    @staticmethod
    def categorize_error(error: str) -> str:
        """Bucket an error message into one of ``ERROR_TYPES``."""
        lower = error.lower()
        if "timeout" in lower or "ttl" in lower:
            return "timeout"
        if "connection" in lower or "network" in lower:
            return "connection"
        if "redis" in lower or "database" in lower:
            return "redis"
        if "parse" in lower or "json" in lower or "serializ" in lower or "malformed" in lower:
            return "parse"
        if "permission" in lower or "auth" in lower:
            return "auth"
        return "unknown"

    def _add_event(self, event: CacheEvent) -> None:
        with self._lock:
            self._events.append(event)
        for hook in list(self._event_hooks):
            try:
                hook(event)
            except Exception as e:
                log_exception(logger, "Cache event subscriber failed", e)

    def _notify_metrics_hooks(self) -> None:
        if not self._metrics_hooks:
            return
        snapshot = self.get_metrics()
        for hook in list(self._metrics_hooks):
            try:
                hook(snapshot)
            except Exception as e:
                log_exception(logger, "Cache metrics subscriber failed", e)


def setup_console_metrics(
    collector: CacheMetricsCollector,
    every: int = 10,
) -> Callable[[], None]:
    """Log a one-line summary every ``every`` responses.

    Returns:
        A function that stops the logging.
    """

    last_logged = 0

    def _log_summary(metrics: CacheMetrics) -> None:
        nonlocal last_logged
        total = metrics.total_responses
        if total > 0 and total % every == 0 and total != last_logged:
            last_logged = total
            logger.info(
                "Cache metrics - hit rate: %.1f%%, hits: %d, misses: %d, "
                "jail promotions: %d, errors: %d",
                metrics.hit_rate * 100,
                metrics.cache_hits,
                metrics.cache_misses,
                metrics.jail_promotions,
                metrics.cache_errors,
            )

    return collector.on_metrics_update(_log_summary)


__all__ = [
    "CacheEvent",
    "CacheMetrics",
    "CacheMetricsCollector",
    "DEFAULT_MAX_EVENTS",
    "ERROR_TYPES",
    "EventType",
    "setup_console_metrics",
]
