"""
CLI command for reading cache metrics from a running service.

Usage:
    ai-cache metrics http://localhost:8000/metrics          # Counter table
    ai-cache metrics http://localhost:8000/metrics --events # Recent events too
"""

from __future__ import annotations

import json

import httpx
import typer
from rich.table import Table

from ai_cache.cli.output import console, print_cli_error


def _fetch(url: str, timeout: float) -> dict:
    response = httpx.get(url, timeout=timeout)
    response.raise_for_status()
    return response.json()


def metrics_cmd(
    url: str = typer.Argument(
        ...,
        help="Base URL of the metrics endpoints (the path passed to add_cache_metrics_endpoints)",
    ),
    events: int = typer.Option(
        0,
        "--events",
        "-e",
        help="Also show this many recent events",
    ),
    timeout: float = typer.Option(5.0, "--timeout", help="Request timeout in seconds"),
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show cache counters (and recent events) from a running service."""
    base = url.rstrip("/")
    try:
        summary = _fetch(f"{base}/summary", timeout)
        recent = _fetch(f"{base}/events?limit={events}", timeout) if events > 0 else []
    except httpx.HTTPError as e:
        print_cli_error(f"Failed to fetch metrics: {e}", hint=f"Is the service exposing {base}?")
        raise typer.Exit(1)

    if output_json:
        typer.echo(json.dumps({"summary": summary, "events": recent}, indent=2))
        return

    table = Table(title="ai-cache metrics", title_justify="left")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for name, value in summary.get("counters", {}).items():
        table.add_row(name, str(value))
    for name, value in summary.get("gauges", {}).items():
        table.add_row(name, f"{value:.3f}" if isinstance(value, float) else str(value))
    console.print(table)

    if recent:
        events_table = Table(title="Recent events", title_justify="left")
        events_table.add_column("Type", style="bold")
        events_table.add_column("Key")
        events_table.add_column("Timestamp", justify="right", style="dim")
        for event in recent:
            events_table.add_row(event.get("type", ""), event.get("cache_key", ""), str(event.get("timestamp", "")))
        console.print(events_table)


def register(app: typer.Typer):
    """Register the metrics command to the main app."""
    app.command("metrics")(metrics_cmd)
