"""
Deterministic cache keys for proxied method calls.

A key looks like::

    github.issues.list_labels({"issue_number":1,"owner":"o","repo":"r"})#5f1d2a9c

- the namespace and the dotted attribute path used to reach the method
- a length-capped rendering of the arguments, for logs only
- a short digest of the full canonical argument serialization

Only the path and the digest identify an entry. Arguments are serialized with
sorted object keys so ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}`` produce the
same key.

Example:
    >>> codec = CacheKeyCodec()
    >>> codec.encode("notion", ["pages", "retrieve"], [{"page_id": "abc"}])
    'notion.pages.retrieve({"page_id":"abc"})#...'
"""

from __future__ import annotations

import dataclasses
import enum
import hashlib
import inspect
import json
import logging
import reprlib
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time, timedelta
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEY_LENGTH = 120
DEFAULT_HASH_LENGTH = 8
ELLIPSIS = "..."
ARGS_DELIMITER = ","

# Never let the args display shrink below this, even for very long paths
MIN_DISPLAY_LENGTH = 16


def unserializable_placeholder(value: object) -> str:
    """
    Stand-in for a value that cannot be serialized.

    Carries a bounded repr so distinct values keep distinct keys.
    """
    try:
        shown = reprlib.repr(value)
    except Exception as e:
        shown = f"repr failed: {type(e).__name__}"
    return f"<unserializable:{type(value).__name__}:{shown}>"


def _object_fields(value: Any) -> dict[str, Any] | None:
    """Instance attributes from ``__dict__`` and ``__slots__``, or None if it has neither."""
    fields: dict[str, Any] = {}
    found = False
    for cls in type(value).__mro__:
        slots = cls.__dict__.get("__slots__")
        if slots is None:
            continue
        found = True
        for name in (slots,) if isinstance(slots, str) else slots:
            if name in ("__dict__", "__weakref__") or not hasattr(value, name):
                continue
            fields[name] = getattr(value, name)
    instance_dict = getattr(value, "__dict__", None)
    if isinstance(instance_dict, dict):
        found = True
        fields.update(instance_dict)
    return fields if found else None


def _canonical(value: Any, active: set[int]) -> Any:
    """
    Convert a value to plain JSON data.

    Mapping keys become strings so mixed key types still sort. ``active``
    holds the ids of containers on the current path; meeting one again is a
    cycle and raises ValueError.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, enum.Enum):
        return _canonical(value.value, active)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, PurePath):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, type) or inspect.isroutine(value):
        return f"<{getattr(value, '__module__', '?')}.{getattr(value, '__qualname__', repr(value))}>"

    marker = id(value)
    if marker in active:
        raise ValueError(f"cycle through {type(value).__name__}")
    active.add(marker)
    try:
        if isinstance(value, BaseModel):
            return _canonical(value.model_dump(mode="json"), active)
        if dataclasses.is_dataclass(value):
            return {f.name: _canonical(getattr(value, f.name), active) for f in dataclasses.fields(value)}
        if isinstance(value, Mapping):
            return {str(k): _canonical(v, active) for k, v in value.items()}
        if isinstance(value, (set, frozenset)):
            items = [_canonical(item, active) for item in value]
            return sorted(items, key=_dump)
        if isinstance(value, Sequence):
            return [_canonical(item, active) for item in value]
        fields = _object_fields(value)
        if fields is None:
            raise TypeError(f"{type(value).__name__} has no serializable state")
        state = {name: _canonical(field, active) for name, field in fields.items()}
        return {"__type__": type(value).__qualname__, **state}
    finally:
        active.discard(marker)


def _dump(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def serialize_arg(value: Any) -> str:
    """
    Serialize one argument to canonical JSON.

    Object keys are sorted and separators are compact, so structurally equal
    values always serialize to the same text. Plain objects serialize as their
    attributes plus a ``__type__`` entry. Cyclic structures and values without
    readable state are replaced with a placeholder instead of raising.

    Args:
        value: Any argument passed to a proxied method

    Returns:
        Canonical JSON text (or a quoted placeholder)
    """
    try:
        return _dump(_canonical(value, set()))
    except (TypeError, ValueError, RecursionError) as e:
        logger.debug("Falling back to placeholder for %s: %s", type(value).__name__, e)
        return _dump(unserializable_placeholder(value))


def serialize_args(args: Sequence[Any], kwargs: Mapping[str, Any] | None = None) -> str:
    """Serialize positional args (and kwargs, as one trailing object) joined by a comma."""
    parts = [serialize_arg(arg) for arg in args]
    if kwargs:
        parts.append(serialize_arg(dict(kwargs)))
    return ARGS_DELIMITER.join(parts)


def truncate_middle(text: str, max_length: int) -> str:
    """
    Cap text length by cutting out the middle.

    Args:
        text: Text to shorten
        max_length: Maximum length of the result, ellipsis included

    Returns:
        ``text`` unchanged when short enough, otherwise head + "..." + tail

    Example:
        >>> truncate_middle("abcdefghij", 7)
        'ab...ij'
    """
    if len(text) <= max_length:
        return text
    keep = max(max_length - len(ELLIPSIS), 2)
    head = keep - keep // 2
    tail = keep // 2
    return f"{text[:head]}{ELLIPSIS}{text[len(text) - tail:]}"


class CacheKeyCodec:
    """
    Builds cache keys from a namespace, call path and call arguments.

    Attributes:
        max_length: Target length of the whole key (display part is trimmed to fit)
        hash_length: Number of hex digits of the argument digest
    """

    def __init__(
        self,
        max_length: int = DEFAULT_MAX_KEY_LENGTH,
        hash_length: int = DEFAULT_HASH_LENGTH,
    ) -> None:
        if hash_length < 1 or hash_length > 32:
            raise ValueError("hash_length must be between 1 and 32")
        self.max_length = max_length
        self.hash_length = hash_length

    def digest(self, args_text: str) -> str:
        """Fixed-width digest of the serialized arguments."""
        return hashlib.md5(args_text.encode("utf-8")).hexdigest()[: self.hash_length]

    def encode(
        self,
        namespace: str,
        call_path: Sequence[str],
        args: Sequence[Any] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> str:
        """
        Derive the cache key for one call.

        Args:
            namespace: Key prefix, usually the client name ("github", "notion")
            call_path: Attribute names traversed to reach the method
            args: Positional arguments of the call
            kwargs: Keyword arguments of the call

        Returns:
            ``{namespace}.{path}({display})#{digest}``
        """
        api_path = ".".join(str(part) for part in call_path)
        args_text = serialize_args(args, kwargs)

        overhead = len(namespace) + 1 + len(api_path) + 2 + 1 + self.hash_length
        display_length = max(self.max_length - overhead, MIN_DISPLAY_LENGTH)
        display = truncate_middle(args_text, display_length)

        prefix = f"{namespace}.{api_path}" if namespace else api_path
        return f"{prefix}({display})#{self.digest(args_text)}"


_default_codec = CacheKeyCodec()


def encode_cache_key(
    namespace: str,
    call_path: Sequence[str],
    args: Sequence[Any] = (),
    kwargs: Mapping[str, Any] | None = None,
) -> str:
    """Encode a key with the default codec."""
    return _default_codec.encode(namespace, call_path, args, kwargs)


__all__ = [
    "CacheKeyCodec",
    "encode_cache_key",
    "serialize_arg",
    "serialize_args",
    "truncate_middle",
    "unserializable_placeholder",
]
