"""
Tests for utils.time module - UTC timestamp utilities.

This module tests:
- utc_now() is timezone-aware UTC
- utc_timestamp() format (ISO 8601 with 'Z' suffix)
- seconds_since() elapsed time and naive datetime rejection
"""

from datetime import UTC, datetime, timedelta

import pytest
from freezegun import freeze_time

from hyperchat.utils.time import seconds_since, utc_now, utc_timestamp


class TestUtcNow:
    """Test utc_now() function."""

    def test_has_utc_timezone(self):
        """utc_now() should return timezone-aware datetime with UTC."""
        result = utc_now()
        assert result.tzinfo == UTC
        assert result.tzname() == "UTC"

    @freeze_time("2026-10-18 08:30:45")
    def test_frozen_time_returns_expected_datetime(self):
        """utc_now() should return frozen time when using freezegun."""
        assert utc_now() == datetime(2026, 10, 18, 8, 30, 45, tzinfo=UTC)


class TestUtcTimestamp:
    """Test utc_timestamp() function."""

    @freeze_time("2026-10-18 08:30:45")
    def test_format(self):
        """utc_timestamp() should use YYYY-MM-DDTHH:MM:SSZ."""
        assert utc_timestamp() == "2026-10-18T08:30:45Z"

    @freeze_time("2026-10-18 08:30:45.987654")
    def test_drops_microseconds(self):
        """Sub-second precision is not part of the format."""
        assert utc_timestamp() == "2026-10-18T08:30:45Z"


class TestSecondsSince:
    """Test seconds_since() function."""

    def test_elapsed_seconds(self):
        """seconds_since() should measure time passed since start."""
        with freeze_time("2026-10-18 08:30:00") as frozen:
            start = utc_now()
            frozen.tick(timedelta(seconds=2.5))

            assert seconds_since(start) == 2.5

    @freeze_time("2026-10-18 08:30:00")
    def test_future_start_is_zero(self):
        """A start time in the future never yields a negative duration."""
        assert seconds_since(utc_now() + timedelta(seconds=10)) == 0.0

    def test_naive_datetime_rejected(self):
        """seconds_since() should reject naive datetimes."""
        with pytest.raises(ValueError, match="timezone-aware"):
            seconds_since(datetime(2026, 10, 18, 8, 30))
