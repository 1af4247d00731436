"""Data models for model calls and cached payloads.

Two groups live here:

- Call shapes passed between the middleware and the wrapped model:
  ``GenerateResult`` (single-shot) and ``StreamResult`` / ``StreamPart``
  (streaming).
- Persisted shapes written to the backend: ``CachedEnvelope`` and
  ``JailEntry``. Both serialize with camelCase keys.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticSerializationError

from ai_cache.errors import CacheError, SerializationError

FinishReason = Literal[
    "stop",
    "length",
    "content-filter",
    "tool-calls",
    "error",
    "other",
    "unknown",
]

TEXT_DELTA = "text-delta"
FINISH = "finish"
ERROR = "error"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Call shapes
# =============================================================================


class ContentPart(BaseModel):
    """One part of a model response. Non-text parts keep their extra keys."""

    model_config = ConfigDict(extra="allow")

    type: str = "text"
    text: str = ""


class Usage(_CamelModel):
    """Token usage reported by the model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def zero(cls) -> Usage:
        return cls()


class GenerateResult(BaseModel):
    """Materialized response of a single-shot model call.

    Example:
        >>> result = GenerateResult.from_text("Paris", finish_reason="stop")
        >>> result.text
        'Paris'
    """

    content: list[ContentPart] = Field(default_factory=list)
    finish_reason: str = "stop"
    usage: Usage | None = None
    warnings: list[Any] = Field(default_factory=list)
    raw_call: Any = None
    raw_response: Any = None
    response: Any = None

    @classmethod
    def from_text(cls, text: str, **kwargs: Any) -> GenerateResult:
        content = [ContentPart(type="text", text=text)] if text else []
        return cls(content=content, **kwargs)

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.content if p.type == "text" and p.text)

    @property
    def has_text(self) -> bool:
        return any(p.type == "text" and p.text for p in self.content)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


class StreamPart(BaseModel):
    """One event of a streaming model call."""

    model_config = ConfigDict(extra="allow")

    type: str
    id: str | None = None
    delta: str | None = None
    finish_reason: str | None = None
    usage: Usage | None = None
    error: Any = None

    @classmethod
    def text_delta(cls, delta: str, id: str | None = None) -> StreamPart:
        return cls(type=TEXT_DELTA, id=id, delta=delta)

    @classmethod
    def finish(cls, finish_reason: str, usage: Usage | None = None) -> StreamPart:
        return cls(type=FINISH, finish_reason=finish_reason, usage=usage)


@dataclass
class StreamResult:
    """Result of a streaming model call: the event stream plus call metadata.

    The stream is a one-shot async iterator; consume it once.
    """

    stream: AsyncIterator[StreamPart]
    warnings: list[Any] = field(default_factory=list)
    raw_call: Any = None
    raw_response: Any = None
    response: Any = None


# =============================================================================
# Persisted shapes
# =============================================================================


class CachedEnvelope(_CamelModel):
    """A cached response as written to the backend.

    Serialized shape::

        {"text": ..., "finishReason": ..., "usage": {...}, "warnings": [...],
         "rawCall": ..., "rawResponse": ..., "response": ...}
    """

    text: str = ""
    finish_reason: str = "stop"
    usage: Usage | None = None
    warnings: list[Any] | None = None
    raw_call: Any = None
    raw_response: Any = None
    response: Any = None

    @classmethod
    def from_result(cls, result: GenerateResult) -> CachedEnvelope:
        """Build an envelope from a live response.

        Raises:
            CacheError: If the response finished with ``error``.
        """
        if result.finish_reason == ERROR:
            raise CacheError("Refusing to build a cache envelope from an error response")
        return cls(
            text=result.text,
            finish_reason=result.finish_reason,
            usage=result.usage,
            warnings=list(result.warnings),
            raw_call=result.raw_call,
            raw_response=result.raw_response,
            response=result.response,
        )

    def to_result(self) -> GenerateResult:
        """Turn the envelope back into a ``GenerateResult``."""
        return GenerateResult.from_text(
            self.text,
            finish_reason=self.finish_reason,
            usage=self.usage,
            warnings=list(self.warnings or []),
            raw_call=self.raw_call,
            raw_response=self.raw_response,
            response=self.response,
        )

    def to_json(self) -> str:
        try:
            return self.model_dump_json(by_alias=True, exclude_none=True)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise SerializationError(f"Could not serialize cache envelope: {e}") from e

    @classmethod
    def from_json(cls, raw: str | bytes) -> CachedEnvelope:
        try:
            return cls.model_validate_json(raw)
        except (PydanticValidationError, ValueError) as e:
            raise SerializationError(f"Malformed cache envelope: {e}") from e

    @property
    def size(self) -> int:
        return len(self.text)


class JailResponseSummary(_CamelModel):
    """What the last problematic response looked like."""

    finish_reason: str
    has_warnings: bool = False
    text_length: int = 0

    @classmethod
    def of(cls, result: GenerateResult) -> JailResponseSummary:
        return cls(
            finish_reason=result.finish_reason,
            has_warnings=result.has_warnings,
            text_length=len(result.text),
        )


class JailEntry(_CamelModel):
    """Problematic-response bookkeeping for one cache key.

    Timestamps are epoch milliseconds.
    """

    count: int = Field(0, ge=0)
    first_seen: int = Field(default_factory=now_ms)
    last_seen: int | None = None
    last_response: JailResponseSummary | None = None

    def record(self, result: GenerateResult, at: int | None = None) -> JailEntry:
        """Return a copy with one more problematic response counted."""
        return self.model_copy(
            update={
                "count": self.count + 1,
                "last_seen": now_ms() if at is None else at,
                "last_response": JailResponseSummary.of(result),
            }
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> JailEntry:
        try:
            return cls.model_validate_json(raw)
        except (PydanticValidationError, ValueError) as e:
            raise SerializationError(f"Malformed jail entry: {e}") from e


__all__ = [
    "CachedEnvelope",
    "ContentPart",
    "FinishReason",
    "GenerateResult",
    "JailEntry",
    "JailResponseSummary",
    "StreamPart",
    "StreamResult",
    "Usage",
    "now_ms",
]
