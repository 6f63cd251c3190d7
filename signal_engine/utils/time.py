"""
Market time utilities.

Bar timestamps are authoritative: signal creation, expiry, cooldowns and
deduplication keys are all derived from the time of the bar being scanned.
Wall-clock time is only a last-resort fallback.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_market_time(market_ts: Optional[datetime], fallback_ts: Optional[datetime] = None) -> datetime:
    """
    Ensure we have a valid market time, with proper fallback hierarchy.

    Args:
        market_ts: Preferred market timestamp (bar time)
        fallback_ts: Optional fallback timestamp (e.g., from last known data)

    Returns:
        Timezone-aware datetime, prioritizing market time
    """
    if market_ts is not None:
        return as_utc(market_ts)

    if fallback_ts is not None:
        return as_utc(fallback_ts)

    # Last resort: wall-clock time
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def minute_bucket(ts: datetime) -> str:
    """Minute-resolution bucket of a timestamp, e.g. 2024-03-15T14:31."""
    return as_utc(ts).astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M")


def bar_time_key(symbol: str, ts: datetime, opportunity_type: str) -> str:
    """Deduplication key identifying one opportunity on one bar."""
    return f"{symbol}:{minute_bucket(ts)}:{opportunity_type}"


def is_weekend(ts: datetime) -> bool:
    return as_utc(ts).weekday() >= 5


def expires_at(created_at: datetime, ttl_minutes: int) -> datetime:
    return created_at + timedelta(minutes=ttl_minutes)

