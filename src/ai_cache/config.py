"""Cache configuration.

Settings come from keyword arguments or from ``AI_CACHE_*`` environment
variables (a ``.env`` file is loaded when the package is imported).

Example:
    >>> from ai_cache.config import CacheConfig
    >>>
    >>> config = CacheConfig.from_env()
    >>> config.jail_threshold
    3
    >>> CacheConfig(cache_ttl=3600, stream_chunk_size=16)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from ai_cache.errors import ConfigurationError

DEFAULT_CACHE_TTL = 86400
DEFAULT_JAIL_THRESHOLD = 3
DEFAULT_JAIL_TTL = 86400
DEFAULT_STREAM_CHUNK_SIZE = 5
DEFAULT_CACHE_KEY_PREFIX = "ai-cache"
DEFAULT_JAIL_KEY_PREFIX = "ai-jail"
DEFAULT_MAX_KEY_LOG_LENGTH = 20
DEFAULT_REDIS_URL = "redis://localhost:6379"

# Environment variable -> field name
ENV_VARS: dict[str, str] = {
    "AI_CACHE_TTL": "cache_ttl",
    "AI_CACHE_JAIL_THRESHOLD": "jail_threshold",
    "AI_CACHE_JAIL_TTL": "jail_ttl",
    "AI_CACHE_STREAM_CHUNK_SIZE": "stream_chunk_size",
    "AI_CACHE_ENABLE_LOGGING": "enable_logging",
    "AI_CACHE_ENABLE_METRICS": "enable_metrics",
    "AI_CACHE_KEY_PREFIX": "cache_key_prefix",
    "AI_CACHE_JAIL_KEY_PREFIX": "jail_key_prefix",
    "AI_CACHE_MAX_KEY_LOG_LENGTH": "max_key_log_length",
    "AI_CACHE_SINGLE_FLIGHT": "single_flight",
    "AI_CACHE_SORT_ARRAYS": "sort_arrays",
    "REDIS_URL": "redis_url",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class CacheConfig(BaseModel):
    """Settings for the response cache and the cache jail.

    Attributes:
        cache_ttl: Seconds a cached response lives.
        jail_threshold: Problematic responses for a key before it is promoted.
        jail_ttl: Seconds a jail entry lives; refreshed on every update.
        stream_chunk_size: Characters per text delta when replaying a stream.
        enable_logging: Emit hit/miss/store/jail diagnostics.
        enable_metrics: Record counters and events.
        cache_key_prefix: Namespace for cache keys.
        jail_key_prefix: Namespace for jail keys.
        max_key_log_length: Keys are truncated to this length in log lines.
        single_flight: Collapse concurrent identical misses into one call.
        sort_arrays: Ignore element order of arrays when deriving keys.
        redis_url: Connection URL used by the Redis backend and the CLI.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cache_ttl: int = Field(DEFAULT_CACHE_TTL, ge=1)
    jail_threshold: int = Field(DEFAULT_JAIL_THRESHOLD, ge=1)
    jail_ttl: int = Field(DEFAULT_JAIL_TTL, ge=1)
    stream_chunk_size: int = Field(DEFAULT_STREAM_CHUNK_SIZE, ge=1)
    enable_logging: bool = True
    enable_metrics: bool = True
    cache_key_prefix: str = Field(DEFAULT_CACHE_KEY_PREFIX, min_length=1)
    jail_key_prefix: str = Field(DEFAULT_JAIL_KEY_PREFIX, min_length=1)
    max_key_log_length: int = Field(DEFAULT_MAX_KEY_LOG_LENGTH, ge=1)
    single_flight: bool = False
    sort_arrays: bool = False
    redis_url: str = DEFAULT_REDIS_URL

    @model_validator(mode="after")
    def _distinct_prefixes(self) -> CacheConfig:
        if self.cache_key_prefix == self.jail_key_prefix:
            raise ValueError("cache_key_prefix and jail_key_prefix must differ")
        return self

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> CacheConfig:
        """Build a config from environment variables.

        Args:
            environ: Mapping to read from (default: ``os.environ``).
            **overrides: Field values that win over the environment.

        Raises:
            ConfigurationError: If a variable holds an invalid value.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        for var, field_name in ENV_VARS.items():
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            if cls.model_fields[field_name].annotation is bool:
                values[field_name] = _parse_bool(var, raw)
            else:
                values[field_name] = raw.strip()

        values.update(overrides)
        return validate_cache_config(values)

    def truncate_key(self, key: str) -> str:
        """Shorten a key for log output."""
        if len(key) <= self.max_key_log_length:
            return key
        return f"{key[: self.max_key_log_length]}..."


def _parse_bool(var: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(
        f"Invalid boolean for {var}: {raw!r}",
        setting=var,
        hint="Use one of 1/0, true/false, yes/no, on/off",
    )


def validate_cache_config(values: Mapping[str, Any] | CacheConfig) -> CacheConfig:
    """Validate raw settings and return a ``CacheConfig``.

    Raises:
        ConfigurationError: Wrapping the first pydantic validation error.
    """
    if isinstance(values, CacheConfig):
        return values
    try:
        return CacheConfig(**dict(values))
    except PydanticValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(p) for p in first.get("loc", ())) or None
        env_var = next((k for k, v in ENV_VARS.items() if v == field_name), None)
        raise ConfigurationError(
            f"Invalid cache configuration: {first.get('msg', e)}",
            setting=field_name,
            details={"errors": e.errors(include_url=False)},
            hint=f"Check the {env_var} environment variable" if env_var else None,
        ) from e


__all__ = [
    "CacheConfig",
    "ENV_VARS",
    "validate_cache_config",
]
