"""Logging for ai-cache.

Thin layer over the standard library ``logging`` module:

- ``configure_logging()`` installs a single handler on the ``ai_cache`` logger
  with either a human readable or a JSON formatter.
- ``get_logger()`` returns a ``StructuredLogger`` that accepts keyword fields
  and forwards them as ``extra`` so the JSON formatter can emit them.

Example:
    >>> from ai_cache.logging import configure_logging, get_logger
    >>>
    >>> configure_logging(level="DEBUG", format="json")
    >>> logger = get_logger("middleware")
    >>> logger.info("Cache hit", cache_key="ai-cache:3fa1...", size=42)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Literal

ROOT_LOGGER_NAME = "ai_cache"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class JSONFormatter(logging.Formatter):
    """Formats records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            data[key] = value

        if record.levelno >= logging.ERROR:
            data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)


class HumanFormatter(logging.Formatter):
    """Compact single-line format for terminals."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )


class StructuredLogger:
    """Logger wrapper that turns keyword arguments into ``extra`` fields.

    Example:
        >>> logger = StructuredLogger("ai_cache.jail")
        >>> logger.info("Jail updated", count=2, threshold=3)
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def logger(self) -> logging.Logger:
        """The wrapped standard library logger."""
        return self._logger

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802 - mirrors logging.Logger
        return self._logger.isEnabledFor(level)

    def child(self, suffix: str) -> StructuredLogger:
        return StructuredLogger(f"{self._logger.name}.{suffix}")

    def _log(self, level: int, msg: str, args: tuple[Any, ...], exc_info: Any, fields: dict) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, msg, *args, exc_info=exc_info, extra=fields or None, stacklevel=3)

    def debug(self, msg: str, *args: Any, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, args, exc_info, fields)

    def info(self, msg: str, *args: Any, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.INFO, msg, args, exc_info, fields)

    def warning(self, msg: str, *args: Any, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.WARNING, msg, args, exc_info, fields)

    def error(self, msg: str, *args: Any, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.ERROR, msg, args, exc_info, fields)

    def exception(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.ERROR, msg, args, True, fields)


def get_logger(name: str) -> StructuredLogger:
    """Get a logger namespaced under ``ai_cache``.

    Args:
        name: Component name, e.g. ``"jail"``. Names that already start with
            ``ai_cache`` are used as-is.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return StructuredLogger(name)


def configure_logging(
    level: str | int = "INFO",
    format: Literal["human", "json"] = "human",
    stream: Any = None,
) -> logging.Logger:
    """Configure the ``ai_cache`` logger.

    Replaces any handler previously installed by this function, so it is safe
    to call more than once.

    Args:
        level: Level name or number.
        format: ``"human"`` for terminals, ``"json"`` for log shippers.
        stream: Output stream (default: stderr).

    Returns:
        The configured ``ai_cache`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    for handler in list(logger.handlers):
        if getattr(handler, "_ai_cache_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if format == "json" else HumanFormatter())
    handler._ai_cache_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger


__all__ = [
    "HumanFormatter",
    "JSONFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
