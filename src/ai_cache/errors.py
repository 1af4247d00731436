"""Error hierarchy for ai-cache.

All errors raised inside the package derive from ``AICacheError``. Cache
failures are caught close to where they happen and never fail the wrapped
model call; the classes exist so that callers, logs and metrics can tell the
failure modes apart.

Hierarchy:
    AICacheError
    ├── ConfigurationError
    └── CacheError
        ├── KeyDerivationError
        ├── BackendUnavailableError
        └── SerializationError
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from ai_cache.logging import StructuredLogger


class AICacheError(Exception):
    """Base exception for ai-cache.

    Attributes:
        message: Human readable description.
        details: Extra structured context (backend name, key, ...).
        hint: Optional suggestion for fixing the problem.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        hint: str | None = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.hint = hint
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        return "\n".join(parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ConfigurationError(AICacheError):
    """Invalid or inconsistent cache configuration."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        details: dict[str, Any] | None = None,
        hint: str | None = None,
    ) -> None:
        self.setting = setting
        details = dict(details or {})
        if setting is not None:
            details.setdefault("setting", setting)
        super().__init__(message, details=details, hint=hint)


class CacheError(AICacheError):
    """Base class for failures of a cache operation."""

    pass


class KeyDerivationError(CacheError):
    """The request could not be turned into a cache key."""

    pass


class BackendUnavailableError(CacheError):
    """The key-value backend could not be reached or timed out."""

    def __init__(
        self,
        message: str,
        *,
        backend: str | None = None,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
        hint: str | None = None,
    ) -> None:
        self.backend = backend
        self.operation = operation
        details = dict(details or {})
        if backend:
            details.setdefault("backend", backend)
        if operation:
            details.setdefault("operation", operation)
        super().__init__(message, details=details, hint=hint)


class SerializationError(CacheError):
    """A cached payload could not be encoded or decoded."""

    pass


def log_exception(
    logger: logging.Logger | StructuredLogger,
    message: str,
    exc: BaseException,
    *,
    level: Literal["debug", "info", "warning", "error"] = "warning",
    include_traceback: bool = True,
) -> None:
    """Log a caught exception with its type name.

    Args:
        logger: Logger to write to.
        message: What was being attempted.
        exc: The exception that was caught.
        level: Log level name.
        include_traceback: Attach ``exc_info`` to the record.
    """
    log = getattr(logger, level)
    log(
        "%s: %s: %s",
        message,
        type(exc).__name__,
        exc,
        exc_info=exc if include_traceback else None,
    )
