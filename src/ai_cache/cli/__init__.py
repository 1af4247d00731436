from __future__ import annotations

import typer
from rich.text import Text

from ai_cache import __version__
from ai_cache.cli.cmds import register_cache, register_metrics
from ai_cache.cli.output import console
from ai_cache.logging import configure_logging

_TYPER_HELP = """Inspect and manage the ai-cache response cache.

**Quick start:**

* `ai-cache key gpt-4o '{"prompt": "Hi"}'` - Derive the cache key for a call
* `ai-cache show KEY` - Show what is cached under a key
* `ai-cache evict KEY` - Delete a cached response and its jail entry
* `ai-cache config` - Show the effective configuration
"""


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(Text(f"ai-cache v{__version__}", style="bold #6366f1"))
        raise typer.Exit()


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=_TYPER_HELP,
    rich_markup_mode="markdown",
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Log level for ai_cache loggers.",
    ),
):
    """ai-cache - Response cache with failure jail for model calls."""
    configure_logging(log_level)


register_cache(app)
register_metrics(app)


def main():
    app()


if __name__ == "__main__":
    main()
