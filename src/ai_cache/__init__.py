import os

from dotenv import find_dotenv, load_dotenv

if not os.environ.get("AI_CACHE_ENV_LOADED"):
    load_dotenv(find_dotenv(usecwd=True))
    os.environ["AI_CACHE_ENV_LOADED"] = "1"

from ai_cache.backends import CacheBackend, MemoryCacheBackend, create_backend
from ai_cache.classify import Classification, classify
from ai_cache.config import CacheConfig, validate_cache_config

# Cross-cutting concerns
from ai_cache.errors import (
    AICacheError,
    BackendUnavailableError,
    CacheError,
    ConfigurationError,
    KeyDerivationError,
    SerializationError,
)
from ai_cache.jail import JailManager
from ai_cache.key import CacheKeyGenerator, derive_key, jail_key_for
from ai_cache.logging import configure_logging, get_logger
from ai_cache.metrics import (
    CacheEvent,
    CacheMetrics,
    CacheMetricsCollector,
    setup_console_metrics,
)
from ai_cache.middleware import CachedModel, CacheMiddleware, wrap_model
from ai_cache.models import (
    CachedEnvelope,
    ContentPart,
    GenerateResult,
    JailEntry,
    StreamPart,
    StreamResult,
    Usage,
)
from ai_cache.replay import mask_freshness, replay_stream
from ai_cache.store import CacheStore
from ai_cache.strategy import CacheStrategy

__version__ = "1.0.0"

__all__ = [
    # Middleware
    "CacheMiddleware",
    "CachedModel",
    "wrap_model",
    # Call shapes
    "ContentPart",
    "GenerateResult",
    "StreamPart",
    "StreamResult",
    "Usage",
    # Cache internals
    "CacheKeyGenerator",
    "CacheStore",
    "CacheStrategy",
    "CachedEnvelope",
    "Classification",
    "JailEntry",
    "JailManager",
    "classify",
    "derive_key",
    "jail_key_for",
    "mask_freshness",
    "replay_stream",
    # Backends
    "CacheBackend",
    "MemoryCacheBackend",
    "create_backend",
    # Metrics
    "CacheEvent",
    "CacheMetrics",
    "CacheMetricsCollector",
    "setup_console_metrics",
    # Config
    "CacheConfig",
    "validate_cache_config",
    # Errors
    "AICacheError",
    "BackendUnavailableError",
    "CacheError",
    "ConfigurationError",
    "KeyDerivationError",
    "SerializationError",
    # Logging
    "configure_logging",
    "get_logger",
]
