"""
Tests for freshness and staleness predicates.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cachesync.core.cache.models import CacheRecord
from cachesync.core.freshness import (
    FreshnessPredicate,
    fresh_since,
    parse_duration,
    parse_timestamp,
    resolve_bound,
    stale_since,
)

NOW = datetime(2025, 1, 8, 12, 0, tzinfo=timezone.utc)
EPSILON = timedelta(milliseconds=1)


class TestParseDuration:
    """Test human duration parsing."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1d", timedelta(days=1)),
            ("30m", timedelta(minutes=30)),
            ("2h30m", timedelta(hours=2, minutes=30)),
            ("500ms", timedelta(milliseconds=500)),
            ("1 week", timedelta(weeks=1)),
            ("90", timedelta(seconds=90)),
            ("1.5h", timedelta(minutes=90)),
        ],
    )
    def test_valid(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "1x", "1d garbage", "d1"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_duration(text)

    @pytest.mark.parametrize("text", ["inf", "-inf", "nan", "1e300", "99999999999d"])
    def test_out_of_range(self, text):
        """Values timedelta cannot hold raise ValueError like any other bad input."""
        with pytest.raises(ValueError):
            parse_duration(text)


class TestParseTimestamp:
    """Test stored timestamp normalization."""

    def test_iso_with_z(self):
        assert parse_timestamp("2025-01-01T00:00:00Z") == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        assert parse_timestamp(datetime(2025, 1, 1)) == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_epoch_seconds(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_missing(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            parse_timestamp(True)


class TestResolveBound:
    """Test boundary computation."""

    def test_duration_relative_to_now(self):
        assert resolve_bound("1d", NOW) == NOW - timedelta(days=1)

    def test_seconds(self):
        assert resolve_bound(60, NOW) == NOW - timedelta(minutes=1)

    def test_absolute_instant(self):
        instant = datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert resolve_bound(instant, NOW) == instant

    def test_invalid_bound_rejected_early(self):
        with pytest.raises(ValueError):
            fresh_since("soon")


class TestBoundaryInclusivity:
    """A timestamp exactly on the boundary satisfies both predicates."""

    def test_on_boundary(self):
        boundary = NOW - timedelta(days=1)
        assert fresh_since("1d")(boundary, now=NOW) is True
        assert stale_since("1d")(boundary, now=NOW) is True

    def test_just_after_boundary(self):
        stamp = NOW - timedelta(days=1) + EPSILON
        assert fresh_since("1d")(stamp, now=NOW) is True
        assert stale_since("1d")(stamp, now=NOW) is False

    def test_just_before_boundary(self):
        stamp = NOW - timedelta(days=1) - EPSILON
        assert fresh_since("1d")(stamp, now=NOW) is False
        assert stale_since("1d")(stamp, now=NOW) is True

    def test_never_stored_is_stale_not_fresh(self):
        assert stale_since("1d")(None, now=NOW) is True
        assert fresh_since("1d")(None, now=NOW) is False

    def test_absolute_bound(self):
        instant = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert fresh_since(instant)("2025-01-01T00:00:00Z") is True
        assert stale_since(instant)("2025-01-01T00:00:00Z") is True


class TestMatches:
    """Test record field evaluation."""

    def test_mapping_record(self):
        record = {"updated_at": (NOW - timedelta(hours=1)).isoformat()}
        assert fresh_since("1d").matches(record, "updated_at", now=NOW)

    def test_object_record(self):
        record = CacheRecord(key="k", value=1, stored_at=(NOW - timedelta(days=3)).timestamp())
        assert stale_since("1d").matches(record, "stored_datetime", now=NOW)

    def test_missing_field_is_stale(self):
        assert stale_since("1d").matches({}, "updated_at", now=NOW)
        assert stale_since("1d").matches(None, "updated_at", now=NOW)
        assert not fresh_since("1d").matches({}, "updated_at", now=NOW)


class TestToQuery:
    """Test document-database filter rendering."""

    def test_fresh_query(self):
        assert fresh_since("1d").to_query(now=NOW) == {"$gte": NOW - timedelta(days=1)}

    def test_stale_query_uses_not(self):
        assert stale_since("7d").to_query(now=NOW) == {"$not": {"$gt": NOW - timedelta(days=7)}}


class TestRecordFreshness:
    """CacheRecord.is_fresh delegates to fresh_since."""

    def test_recent_record(self):
        record = CacheRecord(key="k", value=1, stored_at=(NOW - timedelta(minutes=5)).timestamp())
        assert record.is_fresh("1h", now=NOW)
        assert not record.is_fresh("1m", now=NOW)


class TestPredicate:
    def test_invalid_kind(self):
        with pytest.raises(ValueError):
            FreshnessPredicate("warm", "1d")

    def test_repr(self):
        assert repr(stale_since("1d")) == "stale_since('1d')"
