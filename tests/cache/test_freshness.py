"""Tests for freshness evaluation."""

from datetime import datetime, timedelta, timezone

import pytest

from snowpeak.cache.freshness import (
    CacheStatus,
    cache_age_seconds,
    evaluate,
    is_fresh,
    parse_timestamp,
    to_db_timestamp,
)

NOW = datetime(2026, 1, 12, 3, 30, 0, tzinfo=timezone.utc)


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_naive_string_is_utc(self):
        """Zone-less strings are read as UTC, not local time."""
        parsed = parse_timestamp("2026-01-12T03:19:40.195")
        assert parsed == datetime(2026, 1, 12, 3, 19, 40, 195000, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        parsed = parse_timestamp(datetime(2026, 1, 12, 3, 0))
        assert parsed.tzinfo == timezone.utc
        assert parsed.hour == 3

    def test_z_suffix(self):
        parsed = parse_timestamp("2026-01-12T03:19:40Z")
        assert parsed == datetime(2026, 1, 12, 3, 19, 40, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        parsed = parse_timestamp("2026-01-11T20:00:00-07:00")
        assert parsed == datetime(2026, 1, 12, 3, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", 12345])
    def test_unparseable_returns_none(self, value):
        assert parse_timestamp(value) is None


class TestIsFresh:
    """Tests for TTL checks."""

    def test_recent_naive_timestamp_is_fresh(self):
        """A naive timestamp 11 minutes old is fresh for a 1h TTL."""
        assert is_fresh("2026-01-12T03:19:40.195", 3600, NOW)

    def test_old_timestamp_is_stale(self):
        assert not is_fresh(NOW - timedelta(hours=2), 3600, NOW)

    def test_ttl_boundary_inclusive(self):
        assert is_fresh(NOW - timedelta(seconds=3600), 3600, NOW)
        assert not is_fresh(NOW - timedelta(seconds=3601), 3600, NOW)

    def test_future_timestamp_is_fresh(self):
        """Clock skew producing a slightly future timestamp still counts as fresh."""
        assert is_fresh(NOW + timedelta(minutes=5), 3600, NOW)

    def test_missing_timestamp_is_not_fresh(self):
        assert not is_fresh(None, 3600, NOW)
        assert not is_fresh("garbage", 3600, NOW)

    def test_db_round_trip_keeps_age(self):
        """Values written through to_db_timestamp read back with the same age."""
        written = to_db_timestamp(NOW - timedelta(minutes=10))
        assert written.tzinfo is None
        assert cache_age_seconds(written, NOW) == pytest.approx(600)


class TestEvaluate:
    def test_statuses(self):
        assert evaluate(None, 3600, NOW) == CacheStatus.MISS
        assert evaluate(NOW - timedelta(minutes=1), 3600, NOW) == CacheStatus.HIT
        assert evaluate(NOW - timedelta(days=1), 3600, NOW) == CacheStatus.STALE
