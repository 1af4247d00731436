"""
CLI commands for inspecting the response cache.

Usage:
    ai-cache key gpt-4o '{"prompt": "Hi"}'   # Derive the cache and jail keys
    ai-cache show ai-cache:3f2a...            # Show the cached response and jail entry
    ai-cache evict ai-cache:3f2a...           # Delete the cache and jail entries
    ai-cache config                           # Show the effective configuration
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer

from ai_cache.backends import CacheBackend, create_backend
from ai_cache.cli.output import (
    print_cli_error,
    print_cli_info,
    print_cli_success,
    print_config,
    print_entry,
    print_keys,
)
from ai_cache.config import CacheConfig
from ai_cache.errors import AICacheError, ConfigurationError
from ai_cache.jail import JailManager
from ai_cache.key import CacheKeyGenerator, jail_key_for
from ai_cache.store import CacheStore


def _load_config(**overrides: Any) -> CacheConfig:
    try:
        return CacheConfig.from_env(**{k: v for k, v in overrides.items() if v is not None})
    except ConfigurationError as e:
        print_cli_error(e.message, hint=e.hint)
        raise typer.Exit(1)


def _open_backend(config: CacheConfig) -> CacheBackend:
    return create_backend("redis", url=config.redis_url)


def _jail_key(config: CacheConfig, cache_key: str) -> str:
    return jail_key_for(
        cache_key,
        cache_prefix=config.cache_key_prefix,
        jail_prefix=config.jail_key_prefix,
    )


def key_cmd(
    model_id: str = typer.Argument(..., help="Model identifier"),
    params_json: str = typer.Argument(..., help="Call parameters as a JSON object"),
    prefix: str | None = typer.Option(
        None,
        "--prefix",
        help="Cache key prefix (default: AI_CACHE_KEY_PREFIX)",
    ),
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Derive the cache key and jail key for a call."""
    try:
        params = json.loads(params_json)
    except json.JSONDecodeError as e:
        print_cli_error(f"Invalid parameters JSON: {e}", hint="Quote the JSON object in single quotes")
        raise typer.Exit(1)

    config = _load_config(cache_key_prefix=prefix)
    generator = CacheKeyGenerator(config.cache_key_prefix, sort_arrays=config.sort_arrays)
    cache_key = generator.generate(params, model_id)
    if not cache_key:
        print_cli_error("Could not derive a cache key from these parameters")
        raise typer.Exit(1)

    jail_key = _jail_key(config, cache_key)

    if output_json:
        typer.echo(json.dumps({"cache_key": cache_key, "jail_key": jail_key}, indent=2))
    else:
        print_keys(cache_key, jail_key)


def show_cmd(
    cache_key: str = typer.Argument(..., help="Cache key to inspect"),
    redis_url: str | None = typer.Option(
        None,
        "--redis-url",
        help="Redis URL (default: REDIS_URL)",
    ),
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show the cached response and jail entry for a key."""
    config = _load_config(redis_url=redis_url)

    async def _read():
        backend = _open_backend(config)
        try:
            store = CacheStore(backend, config)
            jail = JailManager(backend, store, config)
            return await store.get(cache_key), await jail.get_entry(cache_key)
        finally:
            await backend.close()

    try:
        envelope, entry = asyncio.run(_read())
    except AICacheError as e:
        print_cli_error(f"Failed to read cache: {e.message}", hint=e.hint)
        raise typer.Exit(1)

    if output_json:
        typer.echo(
            json.dumps(
                {
                    "cache_key": cache_key,
                    "cached": envelope.model_dump(by_alias=True, exclude_none=True) if envelope else None,
                    "jail": entry.model_dump(by_alias=True, exclude_none=True) if entry else None,
                },
                indent=2,
                default=str,
            )
        )
    else:
        print_entry(cache_key, envelope, entry)


def evict_cmd(
    cache_key: str = typer.Argument(..., help="Cache key to evict"),
    redis_url: str | None = typer.Option(
        None,
        "--redis-url",
        help="Redis URL (default: REDIS_URL)",
    ),
    keep_jail: bool = typer.Option(
        False,
        "--keep-jail",
        help="Only delete the cached response, keep the jail entry",
    ),
):
    """Delete the cached response (and jail entry) for a key."""
    config = _load_config(redis_url=redis_url)

    async def _evict() -> tuple[bool, bool]:
        backend = _open_backend(config)
        try:
            removed = await backend.delete(cache_key)
            jail_removed = False if keep_jail else await backend.delete(_jail_key(config, cache_key))
            return removed, jail_removed
        finally:
            await backend.close()

    try:
        removed, jail_removed = asyncio.run(_evict())
    except AICacheError as e:
        print_cli_error(f"Failed to evict: {e.message}", hint=e.hint)
        raise typer.Exit(1)

    if not removed and not jail_removed:
        print_cli_info(f"Nothing stored for {config.truncate_key(cache_key)}")
        return
    parts = [name for name, done in (("cache", removed), ("jail", jail_removed)) if done]
    print_cli_success("Evicted " + " and ".join(parts) + " entry", details=cache_key)


def config_cmd(
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show the effective cache configuration."""
    config = _load_config()
    if output_json:
        typer.echo(json.dumps(config.model_dump(), indent=2))
    else:
        print_config(config)


def register(parent: typer.Typer):
    """Register cache commands to the main app."""
    parent.command("key")(key_cmd)
    parent.command("show")(show_cmd)
    parent.command("evict")(evict_cmd)
    parent.command("config")(config_cmd)
