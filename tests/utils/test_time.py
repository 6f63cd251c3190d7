"""
Tests for time utilities and time semantics handling.

Verifies that market time is used correctly, fallback strategies work,
and that deduplication keys and expiry derive from bar time.
"""

import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import patch

from signal_engine.utils.time import (
    as_utc, bar_time_key, ensure_market_time, expires_at, is_weekend, minute_bucket
)


class TestEnsureMarketTime:
    """Test ensure_market_time function."""

    def test_prioritizes_market_time(self):
        """Should prioritize market time over fallback."""
        market_ts = datetime(2024, 3, 15, 14, 31, tzinfo=timezone.utc)
        fallback_ts = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
        assert ensure_market_time(market_ts, fallback_ts) == market_ts

    def test_uses_fallback_when_market_time_missing(self):
        """Should use fallback timestamp when market time is None."""
        fallback_ts = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
        assert ensure_market_time(None, fallback_ts) == fallback_ts

    def test_uses_wall_clock_as_last_resort(self):
        """Should use wall-clock time when both timestamps are None."""
        with patch('signal_engine.utils.time.datetime') as mock_datetime:
            mock_now = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
            mock_datetime.now.return_value = mock_now

            result = ensure_market_time(None, None)
            assert result == mock_now
            mock_datetime.now.assert_called_once_with(timezone.utc)

    def test_naive_market_time_treated_as_utc(self):
        """Naive bar timestamps are interpreted as UTC."""
        result = ensure_market_time(datetime(2024, 3, 15, 14, 31))
        assert result.tzinfo == timezone.utc
        assert result.hour == 14


class TestBarTimeKey:
    """Test deduplication keys."""

    def test_key_format(self):
        """Key joins symbol, minute bucket and opportunity type."""
        ts = datetime(2024, 3, 15, 14, 31, 42, tzinfo=timezone.utc)
        assert bar_time_key("SPY", ts, "gamma_pinning") == "SPY:2024-03-15T14:31:gamma_pinning"

    def test_same_minute_same_key(self):
        """Seconds within one bar do not change the key."""
        first = datetime(2024, 3, 15, 14, 31, 5, tzinfo=timezone.utc)
        second = first + timedelta(seconds=50)
        assert bar_time_key("SPY", first, "x") == bar_time_key("SPY", second, "x")

    def test_bucket_normalized_to_utc(self):
        """Offset timestamps bucket by their UTC minute."""
        eastern = timezone(timedelta(hours=-4))
        ts = datetime(2024, 3, 15, 10, 31, tzinfo=eastern)
        assert minute_bucket(ts) == "2024-03-15T14:31"


class TestCalendarHelpers:
    """Test expiry and weekend helpers."""

    def test_expires_at(self):
        """Expiry is the creation time plus the TTL."""
        created = datetime(2024, 3, 15, 14, 31, tzinfo=timezone.utc)
        assert expires_at(created, 30) == datetime(2024, 3, 15, 15, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("day,expected", [
        (15, False),  # Friday
        (16, True),   # Saturday
        (17, True),   # Sunday
        (18, False),  # Monday
    ])
    def test_is_weekend(self, day, expected):
        assert is_weekend(datetime(2024, 3, day, 12, 0, tzinfo=timezone.utc)) is expected

    def test_as_utc_keeps_aware_timestamps(self):
        ts = datetime(2024, 3, 15, 10, 0, tzinfo=timezone(timedelta(hours=-4)))
        assert as_utc(ts) is ts
