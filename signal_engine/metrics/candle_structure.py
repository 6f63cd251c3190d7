"""Candle structure analysis used by consolidation (patience candle) checks"""

from dataclasses import dataclass

from signal_engine.data.models import Bar


@dataclass(frozen=True)
class CandleStructure:
    """Candle structure analysis results"""
    range_value: float
    body: float
    upper_shadow: float
    lower_shadow: float
    body_pct: float
    close_position: str     # near_high | near_low | near_open | mid_range
    is_bull: bool
    is_bear: bool


def classify_close_position(bar: Bar) -> str:
    """
    Where the bar closed within its range.

    A body under 10% of the range reads as near_open; otherwise the close
    position in the range decides (above 70% near_high, below 30% near_low).
    """
    range_value = bar.high - bar.low
    if range_value <= 0:
        return "mid_range"

    if bar.body < range_value * 0.1:
        return "near_open"

    position = (bar.close - bar.low) / range_value
    if position > 0.7:
        return "near_high"
    if position < 0.3:
        return "near_low"
    return "mid_range"


def analyze_candle_structure(bar: Bar) -> CandleStructure:
    """
    Analyze candle structure components

    Args:
        bar: Bar to analyze

    Returns:
        CandleStructure with all analysis components
    """
    range_value = bar.high - bar.low
    body = abs(bar.close - bar.open)
    upper_shadow = bar.high - max(bar.open, bar.close)
    lower_shadow = min(bar.open, bar.close) - bar.low

    # Handle zero range
    body_pct = body / range_value if range_value > 0 else 0.0

    return CandleStructure(
        range_value=range_value,
        body=body,
        upper_shadow=upper_shadow,
        lower_shadow=lower_shadow,
        body_pct=body_pct,
        close_position=classify_close_position(bar),
        is_bull=bar.close > bar.open,
        is_bear=bar.close < bar.open,
    )


def is_inside_bar(current: Bar, previous: Bar) -> bool:
    """Strict inside bar: high below and low above the previous bar."""
    return current.high < previous.high and current.low > previous.low


def is_contained(bar: Bar, anchor: Bar, tolerance_pct: float = 0.1) -> bool:
    """Bar sits inside the anchor range widened by a fraction of that range."""
    tolerance = (anchor.high - anchor.low) * tolerance_pct
    return bar.high <= anchor.high + tolerance and bar.low >= anchor.low - tolerance
