"""Utility modules for the signal engine"""

from .time import bar_time_key, ensure_market_time, expires_at, is_weekend, minute_bucket

__all__ = ["bar_time_key", "ensure_market_time", "expires_at", "is_weekend", "minute_bucket"]
