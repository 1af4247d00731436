"""Cache key derivation.

Turns ``(model_id, params)`` into a short, stable key of the form
``"{prefix}:{sha256 hex}"``. Parameters are normalized first so that the key
does not depend on mapping key order, ``None`` values or values that cannot
be serialized (functions, classes, arbitrary objects).

Example:
    >>> from ai_cache.key import derive_key
    >>>
    >>> derive_key("gpt-4o", {"a": 1, "b": 2}) == derive_key("gpt-4o", {"b": 2, "a": 1})
    True
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

from ai_cache.config import DEFAULT_CACHE_KEY_PREFIX, DEFAULT_JAIL_KEY_PREFIX
from ai_cache.errors import KeyDerivationError

logger = logging.getLogger(__name__)

MAX_ARRAY_ITEMS = 100
MAX_SERIALIZED_LENGTH = 1000

_HASHED_PREFIX = "sha256:"
_MAPPING_TAG = b"M"
_ARRAY_TAG = b"A"
_ABSENT = b"\x00"
_PRESENT = b"\x01"


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _update_framed(digest: Any, component: str | None) -> None:
    # presence byte, 8-byte big-endian length, payload
    if component is None:
        digest.update(_ABSENT)
        return
    data = component.encode()
    digest.update(_PRESENT)
    digest.update(len(data).to_bytes(8, "big"))
    digest.update(data)


class CacheKeyGenerator:
    """Generates cache keys from model ids and request parameters.

    Normalization rules:
        - ``None`` is absent: dropped from mappings, kept as a ``null``
          placeholder inside arrays so positions stay meaningful.
        - ``False``, ``0`` and ``""`` are real values and are kept.
        - Primitives are stringified; booleans become ``"true"``/``"false"``.
        - Mappings are serialized with their keys sorted.
        - Arrays keep their order unless ``sort_arrays`` is set. Sets are
          always sorted.
        - Callables and unknown objects are absent.
        - Arrays longer than ``max_array_items`` and any value serializing to
          more than ``max_serialized_length`` characters are replaced by a
          running SHA-256 over their elements.

    Example:
        >>> gen = CacheKeyGenerator(prefix="ai-cache")
        >>> gen.generate({"prompt": "Hello", "temperature": 0}, model_id="m1")
        'ai-cache:...'
    """

    def __init__(
        self,
        prefix: str = DEFAULT_CACHE_KEY_PREFIX,
        *,
        sort_arrays: bool = False,
        max_array_items: int = MAX_ARRAY_ITEMS,
        max_serialized_length: int = MAX_SERIALIZED_LENGTH,
    ) -> None:
        """Initialize the key generator.

        Args:
            prefix: Namespace prepended to every key.
            sort_arrays: Treat arrays as unordered. Off by default because
                ordered parameters (message lists) would otherwise collide.
            max_array_items: Arrays above this length are hashed.
            max_serialized_length: Values serializing above this length are hashed.
        """
        self.prefix = prefix
        self.sort_arrays = sort_arrays
        self.max_array_items = max_array_items
        self.max_serialized_length = max_serialized_length

    def generate(self, params: Any, model_id: str | None = None) -> str:
        """Derive the cache key for a call.

        Returns:
            The key, or ``""`` when the parameters cannot be normalized.
            Callers must treat ``""`` as "do not cache this call".
        """
        try:
            return self.derive(params, model_id)
        except KeyDerivationError as e:
            logger.warning("Cache key derivation failed: %s", e.message)
        except (RecursionError, TypeError, ValueError) as e:
            logger.warning("Cache key derivation failed: %s: %s", type(e).__name__, e)
        return ""

    def derive(self, params: Any, model_id: str | None = None) -> str:
        """Like ``generate()`` but raises instead of returning ``""``.

        Raises:
            KeyDerivationError: If ``params`` normalizes to nothing.
        """
        normalized = self.normalize(params)
        if normalized is None:
            raise KeyDerivationError(
                f"Cannot create cache key from {type(params).__name__} parameters",
                details={"model_id": model_id},
            )
        key_string = _dumps({"modelId": model_id or "unknown", "params": normalized})
        return f"{self.prefix}:{self.generate_hash(key_string)}"

    @staticmethod
    def generate_hash(text: str) -> str:
        """SHA-256 hex digest of ``text``."""
        return hashlib.sha256(text.encode()).hexdigest()

    def normalize(self, value: Any) -> str | None:
        """Normalize a value to a string, or ``None`` if it is absent."""
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return self.normalize(value.value)
        if isinstance(value, (int, float)):
            return repr(value) if isinstance(value, float) else str(value)
        if isinstance(value, str):
            return self._bound_string(value)
        if isinstance(value, (bytes, bytearray)):
            return self._bound_string(bytes(value).hex())
        if isinstance(value, BaseModel):
            return self.normalize(value.model_dump(exclude_none=True))
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return self.normalize(dataclasses.asdict(value))
        if isinstance(value, Mapping):
            return self._normalize_mapping(value)
        if isinstance(value, (set, frozenset)):
            return self._normalize_sequence(list(value), sort=True)
        if isinstance(value, (list, tuple)):
            return self._normalize_sequence(list(value), sort=self.sort_arrays)
        # Callables and arbitrary objects have no stable representation
        return None

    def _bound_string(self, value: str) -> str:
        if len(value) <= self.max_serialized_length:
            return value
        return _HASHED_PREFIX + self.generate_hash(value)

    def _normalize_mapping(self, value: Mapping[Any, Any]) -> str:
        entries: list[tuple[str, str]] = []
        for k, v in sorted(value.items(), key=lambda item: str(item[0])):
            normalized = self.normalize(v)
            if normalized is None:
                continue
            entries.append((str(k), normalized))

        serialized = _dumps(dict(entries))
        if len(serialized) <= self.max_serialized_length:
            return serialized

        digest = hashlib.sha256(_MAPPING_TAG)
        for k, v in entries:
            _update_framed(digest, k)
            _update_framed(digest, v)
        return _HASHED_PREFIX + digest.hexdigest()

    def _normalize_sequence(self, items: list[Any], *, sort: bool) -> str:
        normalized = [self.normalize(item) for item in items]
        if sort:
            normalized.sort(key=lambda s: (s is None, s or ""))

        if len(normalized) <= self.max_array_items:
            serialized = _dumps(normalized)
            if len(serialized) <= self.max_serialized_length:
                return serialized

        digest = hashlib.sha256(_ARRAY_TAG)
        for item in normalized:
            _update_framed(digest, item)
        return _HASHED_PREFIX + digest.hexdigest()


def derive_key(
    model_id: str | None,
    params: Any,
    *,
    prefix: str = DEFAULT_CACHE_KEY_PREFIX,
    sort_arrays: bool = False,
) -> str:
    """Derive a cache key; returns ``""`` on failure.

    Example:
        >>> derive_key("m1", {"q": "x"}).startswith("ai-cache:")
        True
    """
    return CacheKeyGenerator(prefix, sort_arrays=sort_arrays).generate(params, model_id)


def jail_key_for(
    cache_key: str,
    *,
    cache_prefix: str = DEFAULT_CACHE_KEY_PREFIX,
    jail_prefix: str = DEFAULT_JAIL_KEY_PREFIX,
) -> str:
    """Map a cache key to the key of its jail entry.

    Example:
        >>> jail_key_for("ai-cache:abc123")
        'ai-jail:abc123'
    """
    digest = cache_key.removeprefix(f"{cache_prefix}:")
    return f"{jail_prefix}:{digest}"


__all__ = [
    "CacheKeyGenerator",
    "MAX_ARRAY_ITEMS",
    "MAX_SERIALIZED_LENGTH",
    "derive_key",
    "jail_key_for",
]
