"""Response classification.

Decides what the cache may do with a live response:

- ``SUCCESSFUL``: cache immediately.
- ``PROBLEMATIC``: usable content with a quality signal (content filter,
  ``other`` finish reason, or warnings). Goes to the cache jail.
- ``IGNORABLE``: everything else, including every ``error`` response and
  every response without text. Never cached.
"""

from __future__ import annotations

from enum import Enum

from ai_cache.models import GenerateResult

DEGRADED_FINISH_REASONS = frozenset({"other", "content-filter"})


class Classification(str, Enum):
    SUCCESSFUL = "successful"
    PROBLEMATIC = "problematic"
    IGNORABLE = "ignorable"


def classify(result: GenerateResult | None) -> Classification:
    """Classify a materialized response.

    Example:
        >>> classify(GenerateResult.from_text("hi", finish_reason="stop"))
        <Classification.SUCCESSFUL: 'successful'>
        >>> classify(GenerateResult.from_text("hi", finish_reason="content-filter"))
        <Classification.PROBLEMATIC: 'problematic'>
    """
    if result is None or result.finish_reason == "error" or not result.has_text:
        return Classification.IGNORABLE

    degraded = result.finish_reason in DEGRADED_FINISH_REASONS
    if not degraded and not result.has_warnings:
        return Classification.SUCCESSFUL
    return Classification.PROBLEMATIC


__all__ = ["Classification", "DEGRADED_FINISH_REASONS", "classify"]
