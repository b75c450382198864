"""
Freshness and staleness predicates over stored timestamps.

``fresh_since(bound)`` matches records updated at or after the boundary;
``stale_since(bound)`` matches records never stored, or updated at or before
the boundary. A bound is either a duration ("1d", "30m", timedelta, seconds),
resolved against the evaluation time, or an absolute datetime.

The boundary instant itself satisfies both predicates. A record stamped
exactly at ``now - 1d`` is fresh for ``fresh_since("1d")`` and stale for
``stale_since("1d")``, so whichever check a caller runs treats the tie as
actionable.

Predicates evaluate in Python and render as document-database filters:

    >>> stale_since("7d").to_query(now=datetime(2025, 1, 8, tzinfo=timezone.utc))
    {'$not': {'$gt': datetime.datetime(2025, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)}}
    >>> fresh_since("1h")(datetime.now(timezone.utc))
    True
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Union

Bound = Union[timedelta, float, int, str, datetime]
Timestamp = Union[datetime, str, float, int, None]

_UNITS = {
    "ms": 0.001,
    "msec": 0.001,
    "millisecond": 0.001,
    "milliseconds": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "secs": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
    "hrs": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
    "days": 86400.0,
    "w": 7 * 86400.0,
    "week": 7 * 86400.0,
    "weeks": 7 * 86400.0,
    "y": 365 * 86400.0,
    "year": 365 * 86400.0,
    "years": 365 * 86400.0,
}

_DURATION_PART = re.compile(r"\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]+)\s*")


def parse_duration(text: str) -> timedelta:
    """
    Parse a human duration string.

    Accepts one or more ``<number><unit>`` parts ("1d", "2h30m", "500ms",
    "1 week"). A bare number is read as seconds.

    Raises:
        ValueError: If the text is not a duration
    """
    stripped = text.strip()
    if not stripped:
        raise ValueError("Empty duration")
    try:
        total = float(stripped)
    except ValueError:
        total = _sum_duration_parts(stripped, text)
    try:
        return timedelta(seconds=total)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Duration out of range: '{text}'") from e


def _sum_duration_parts(stripped: str, text: str) -> float:
    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(stripped):
        if match.start() != position:
            break
        amount, unit = match.groups()
        factor = _UNITS.get(unit.lower())
        if factor is None:
            raise ValueError(f"Unknown duration unit '{unit}' in '{text}'")
        total += float(amount) * factor
        position = match.end()
    if position != len(stripped):
        raise ValueError(f"Invalid duration: '{text}'")
    return total


def from_timestamp(seconds: float) -> datetime:
    """Epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Timestamp) -> datetime | None:
    """
    Normalize a stored timestamp.

    Accepts datetimes, ISO-8601 strings (including a trailing "Z") and epoch
    seconds. None and empty strings mean "never stored".
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, bool):
        raise TypeError("bool is not a timestamp")
    if isinstance(value, (int, float)):
        return from_timestamp(float(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return to_utc(datetime.fromisoformat(text))
    raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")


def resolve_bound(bound: Bound, now: datetime | None = None) -> datetime:
    """
    Turn a bound into the boundary instant.

    Durations are subtracted from ``now`` (current UTC time by default);
    datetimes are returned as is (in UTC).
    """
    if isinstance(bound, datetime):
        return to_utc(bound)
    if isinstance(bound, bool):
        raise TypeError("bool is not a freshness bound")
    if isinstance(bound, timedelta):
        delta = bound
    elif isinstance(bound, (int, float)):
        delta = timedelta(seconds=bound)
    elif isinstance(bound, str):
        delta = parse_duration(bound)
    else:
        raise TypeError(f"Unsupported freshness bound: {bound!r}")
    current = to_utc(now) if now is not None else datetime.now(timezone.utc)
    return current - delta


class FreshnessPredicate:
    """
    A fresh/stale test against a stored timestamp.

    Attributes:
        kind: "fresh" or "stale"
        bound: The duration or instant the predicate was built from
    """

    def __init__(self, kind: Literal["fresh", "stale"], bound: Bound) -> None:
        if kind not in ("fresh", "stale"):
            raise ValueError(f"kind must be 'fresh' or 'stale', got {kind!r}")
        # raises on malformed bounds
        resolve_bound(bound, datetime.now(timezone.utc))
        self.kind = kind
        self.bound = bound

    def __repr__(self) -> str:
        return f"{self.kind}_since({self.bound!r})"

    def boundary(self, now: datetime | None = None) -> datetime:
        """The boundary instant at evaluation time ``now``."""
        return resolve_bound(self.bound, now)

    def __call__(self, timestamp: Timestamp, now: datetime | None = None) -> bool:
        """
        Classify one timestamp.

        Args:
            timestamp: Stored timestamp (None = never stored)
            now: Evaluation time for duration bounds
        """
        stored = parse_timestamp(timestamp)
        boundary = self.boundary(now)
        if self.kind == "fresh":
            return stored is not None and (stored > boundary or stored == boundary)
        return stored is None or stored < boundary or stored == boundary

    def matches(self, record: Any, field: str, now: datetime | None = None) -> bool:
        """
        Evaluate against a record's timestamp field.

        Works with mappings (``record[field]``) and objects
        (``record.field``). A missing record or field counts as never stored.
        """
        if record is None:
            timestamp = None
        elif isinstance(record, Mapping):
            timestamp = record.get(field)
        else:
            timestamp = getattr(record, field, None)
        return self(timestamp, now=now)

    def to_query(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Document-database filter for the timestamp field.

        The stale form uses ``$not`` so documents without the field match too.
        """
        boundary = self.boundary(now)
        if self.kind == "fresh":
            return {"$gte": boundary}
        return {"$not": {"$gt": boundary}}


def fresh_since(bound: Bound) -> FreshnessPredicate:
    """Predicate matching timestamps at or after the boundary."""
    return FreshnessPredicate("fresh", bound)


def stale_since(bound: Bound) -> FreshnessPredicate:
    """Predicate matching missing timestamps or ones at or before the boundary."""
    return FreshnessPredicate("stale", bound)


__all__ = [
    "Bound",
    "FreshnessPredicate",
    "fresh_since",
    "from_timestamp",
    "parse_duration",
    "parse_timestamp",
    "resolve_bound",
    "stale_since",
    "to_utc",
]
