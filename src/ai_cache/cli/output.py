"""Rich output helpers for the ai-cache CLI."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table

from ai_cache.config import ENV_VARS, CacheConfig
from ai_cache.models import CachedEnvelope, JailEntry

console = Console()


def print_cli_error(message: str, hint: str | None = None) -> None:
    console.print(f"[bold red]✗[/bold red] {message}")
    if hint:
        console.print(f"  [dim]{hint}[/dim]")


def print_cli_success(message: str, details: str | None = None) -> None:
    console.print(f"[green]✓[/green] {message}")
    if details:
        console.print(f"  [dim]{details}[/dim]", soft_wrap=True)


def print_cli_info(message: str) -> None:
    console.print(f"[dim]{message}[/dim]")


def print_keys(cache_key: str, jail_key: str) -> None:
    """Print a cache key and its jail key without wrapping."""
    console.print(f"[bold #6366f1]cache[/bold #6366f1] {cache_key}", soft_wrap=True)
    console.print(f"[bold #6366f1]jail [/bold #6366f1] {jail_key}", soft_wrap=True)


def print_config(config: CacheConfig) -> None:
    """Print the effective configuration with the variable behind each field."""
    env_for = {field_name: var for var, field_name in ENV_VARS.items()}
    table = Table(title="ai-cache configuration", title_justify="left")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_column("Environment variable", style="dim")
    for name, value in config.model_dump().items():
        table.add_row(name, str(value), env_for.get(name, ""))
    console.print(table)


def print_entry(
    cache_key: str,
    envelope: CachedEnvelope | None,
    jail: JailEntry | None,
    *,
    preview_length: int = 80,
) -> None:
    """Print what is stored under a cache key and its jail entry."""
    console.print(f"[bold]{cache_key}[/bold]", soft_wrap=True)
    console.print()

    if envelope is None:
        console.print("  [dim]cache[/dim]  [yellow]empty[/yellow]")
    else:
        preview = envelope.text[:preview_length]
        if len(envelope.text) > preview_length:
            preview += "..."
        console.print(
            f"  [dim]cache[/dim]  [green]cached[/green] "
            f"[dim](finish: {envelope.finish_reason}, {envelope.size} chars)[/dim]"
        )
        console.print(f"         {preview!r}", soft_wrap=True)

    if jail is None:
        console.print("  [dim]jail[/dim]   [dim]none[/dim]")
    else:
        last: dict[str, Any] = jail.last_response.model_dump() if jail.last_response else {}
        console.print(
            f"  [dim]jail[/dim]   count {jail.count} "
            f"[dim](last finish: {last.get('finish_reason', '-')})[/dim]"
        )
    console.print()


__all__ = [
    "console",
    "print_cli_error",
    "print_cli_info",
    "print_cli_success",
    "print_config",
    "print_entry",
    "print_keys",
]
