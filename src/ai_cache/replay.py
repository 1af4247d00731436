"""Stream replay of cached responses.

A streaming caller expects incremental text deltas followed by one finish
event, even when the answer comes from the cache. ``replay_stream()``
rebuilds that event sequence from a ``CachedEnvelope``.

Example:
    >>> envelope = CachedEnvelope(text="hello world", finish_reason="stop")
    >>> [p.delta async for p in replay_stream(envelope, chunk_size=5) if p.delta]
    ['hello', ' worl', 'd']
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

from ai_cache.config import DEFAULT_STREAM_CHUNK_SIZE
from ai_cache.models import CachedEnvelope, StreamPart, Usage

CACHED_ID_BASE = "cached"


def chunk_text(text: str, chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE) -> list[str]:
    """Split ``text`` into consecutive slices of at most ``chunk_size`` characters."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


def response_id(envelope: CachedEnvelope) -> str | None:
    """The ``id`` recorded in the envelope's response metadata, if any."""
    if isinstance(envelope.response, dict):
        value = envelope.response.get("id")
        return str(value) if value is not None else None
    return None


async def replay_stream(
    envelope: CachedEnvelope,
    chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE,
    *,
    id: str | None = None,
) -> AsyncIterator[StreamPart]:
    """Yield text deltas for the cached text, then exactly one finish event.

    Each call returns a new one-shot iterator.

    Args:
        envelope: The cached response.
        chunk_size: Characters per text delta.
        id: Id carried by every text delta. Defaults to the response id
            stored in the envelope.
    """
    part_id = id if id is not None else response_id(envelope)
    for chunk in chunk_text(envelope.text, chunk_size):
        yield StreamPart.text_delta(chunk, id=part_id)
    yield StreamPart.finish(envelope.finish_reason or "stop", envelope.usage or Usage.zero())


def mask_freshness(
    envelope: CachedEnvelope,
    *,
    now: datetime | None = None,
    suffix: str | None = None,
) -> CachedEnvelope:
    """Return a copy whose response metadata looks freshly generated.

    ``response.timestamp`` becomes the current UTC time and ``response.id``
    gets a new random suffix, so two hits never return the same response id.
    Opaque (non-mapping) response metadata is left untouched.
    """
    if envelope.response is not None and not isinstance(envelope.response, dict):
        return envelope

    response: dict[str, Any] = dict(envelope.response or {})
    base_id = response.get("id") or CACHED_ID_BASE
    response["id"] = f"{base_id}-{suffix or uuid.uuid4().hex[:8]}"
    response["timestamp"] = (now or datetime.now(timezone.utc)).isoformat()
    return envelope.model_copy(update={"response": response})


__all__ = ["chunk_text", "mask_freshness", "replay_stream", "response_id"]
