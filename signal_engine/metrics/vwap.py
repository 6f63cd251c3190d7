"""Session-anchored VWAP"""

from datetime import datetime, timezone, tzinfo
from typing import Optional

from signal_engine.data.models import Bar
from signal_engine.utils.time import as_utc


def session_bars(bars: list[Bar], as_of: datetime, tz: tzinfo = timezone.utc) -> list[Bar]:
    """
    Bars since local midnight of the as_of day, up to and including as_of.

    Args:
        bars: Bars in chronological order
        as_of: Current bar time; naive values are read as UTC
        tz: Session timezone used to determine the trading day

    Returns:
        Bars that belong to the current session day
    """
    as_of = as_utc(as_of)
    session_day = as_of.astimezone(tz).date()
    return [
        bar for bar in bars
        if as_utc(bar.time) <= as_of and as_utc(bar.time).astimezone(tz).date() == session_day
    ]


def calculate_vwap(bars: list[Bar]) -> Optional[float]:
    """
    Volume-weighted average of typical price.

    Returns:
        VWAP or None when there is no volume
    """
    total_volume = sum(bar.volume for bar in bars)
    if total_volume <= 0:
        return None
    return sum(bar.typical_price * bar.volume for bar in bars) / total_volume


def vwap_distance_pct(price: float, vwap: Optional[float]) -> float:
    """Percent distance of price from VWAP, 0 when VWAP is undefined."""
    if not vwap or vwap <= 0:
        return 0.0
    return (price - vwap) / vwap * 100
