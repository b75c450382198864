"""
Data models for the caching layer.

Defines the stored record shape, store statistics and the cacheability
decision returned by ``should_cache`` hooks.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from cachesync.core.freshness import Bound


class CacheabilityDecision(str, Enum):
    """Whether a freshly fetched value may be written to the store."""

    STORE = "store"
    SKIP = "skip"

    @classmethod
    def coerce(cls, value: object) -> CacheabilityDecision:
        """
        Normalize a hook return value.

        ``None`` and ``True`` mean store, ``False`` means skip. A mapping with a
        truthy ``skip`` entry (``{"skip": True}``) also means skip.
        """
        if isinstance(value, CacheabilityDecision):
            return value
        if value is None or value is True:
            return cls.STORE
        if value is False:
            return cls.SKIP
        if isinstance(value, dict):
            return cls.SKIP if value.get("skip") else cls.STORE
        if isinstance(value, str):
            return cls(value.lower())
        raise TypeError(f"Unsupported cacheability decision: {value!r}")


class CacheRecord(BaseModel):
    """
    A single stored cache entry.

    Records are never updated in place: a refresh writes a new record over the
    old one.

    Example:
        >>> record = CacheRecord(key="gh.repos.get()#abcd1234", value={"id": 1}, stored_at=0.0)
        >>> record.is_expired(now=10.0)
        False
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str = Field(..., description="Cache key")
    value: Any = Field(..., description="Opaque cached value")
    stored_at: float = Field(
        default_factory=time.time,
        description="Epoch seconds when the value was written",
    )
    expires_at: float | None = Field(
        default=None,
        description="Epoch seconds after which the value is gone (None = no expiry)",
    )

    def is_expired(self, now: float | None = None) -> bool:
        """Check whether the record has reached its expiry time."""
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at

    def remaining_ttl(self, now: float | None = None) -> float | None:
        """Seconds left before expiry, or None when the record never expires."""
        if self.expires_at is None:
            return None
        current = time.time() if now is None else now
        return max(self.expires_at - current, 0.0)

    @property
    def stored_datetime(self) -> datetime:
        """``stored_at`` as a UTC datetime."""
        from cachesync.core.freshness import from_timestamp

        return from_timestamp(self.stored_at)

    def is_fresh(self, bound: Bound, now: datetime | None = None) -> bool:
        """
        Check whether the record was stored recently enough to use as is.

        Args:
            bound: Freshness bound (duration like "1h", timedelta, or datetime)
            now: Evaluation time (defaults to current UTC time)
        """
        from cachesync.core.freshness import fresh_since

        return fresh_since(bound)(self.stored_datetime, now=now)


class StoreStats(BaseModel):
    """Best-effort statistics reported by a store backend."""

    backend: str = Field(..., description="Backend name (memory, disk, sqlite, mongo, tiered)")
    size: int = Field(default=0, ge=0, description="Number of live entries")
    degraded: bool = Field(
        default=False,
        description="True when the preferred backend failed and memory is used instead",
    )


def ttl_seconds(ttl: float | int | timedelta | None) -> float | None:
    """
    Normalize a TTL to seconds.

    Zero, negative and None all mean "no automatic expiry".
    """
    if ttl is None:
        return None
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if seconds <= 0:
        return None
    return seconds


__all__ = ["CacheRecord", "CacheabilityDecision", "StoreStats", "ttl_seconds"]
