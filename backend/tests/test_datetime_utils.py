"""
Tests for datetime utilities module.
"""
import pytest
from datetime import datetime, timezone, timedelta

from portal.core.datetime_utils import ensure_timezone_aware, utc_now


class TestUtcNow:
    def test_is_timezone_aware_utc(self):
        now = utc_now()
        assert now.tzinfo == timezone.utc

    def test_close_to_system_clock(self):
        delta = abs(utc_now() - datetime.now(timezone.utc))
        assert delta < timedelta(seconds=5)


class TestEnsureTimezoneAware:
    """Tests for ensure_timezone_aware function."""

    def test_naive_answer_timestamp_becomes_utc(self):
        """Client answer timestamps without an offset are read as UTC."""
        naive_dt = datetime(2025, 3, 1, 9, 15, 0)

        result = ensure_timezone_aware(naive_dt)

        assert result.tzinfo == timezone.utc
        assert result.replace(tzinfo=None) == naive_dt

    def test_aware_datetime_returned_as_is(self):
        utc_dt = datetime(2025, 3, 1, 9, 15, 0, tzinfo=timezone.utc)
        assert ensure_timezone_aware(utc_dt) is utc_dt

    def test_offset_preserved(self):
        tz_plus_2 = timezone(timedelta(hours=2))
        local_dt = datetime(2025, 3, 1, 11, 15, 0, tzinfo=tz_plus_2)

        result = ensure_timezone_aware(local_dt)

        assert result.tzinfo == tz_plus_2
        assert result == datetime(2025, 3, 1, 9, 15, 0, tzinfo=timezone.utc)

    def test_none_raises(self):
        with pytest.raises(ValueError, match="cannot be None"):
            ensure_timezone_aware(None)
