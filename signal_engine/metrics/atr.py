"""Average True Range for stop sizing and regime classification"""

from typing import Optional

from signal_engine.data.models import Bar


def calculate_true_range(current: Bar, previous: Optional[Bar] = None) -> float:
    """
    Range of a bar including any gap from the prior close.

    Args:
        current: Bar being measured
        previous: Bar before it, None at the start of a series

    Returns:
        max(high - low, |high - prev_close|, |low - prev_close|)
    """
    spread = current.high - current.low
    if previous is None:
        return spread
    return max(spread, abs(current.high - previous.close), abs(current.low - previous.close))


def true_range_series(bars: list[Bar]) -> list[float]:
    """True range of every bar, the first measured on its own range."""
    ranges = []
    previous = None
    for bar in bars:
        ranges.append(calculate_true_range(bar, previous))
        previous = bar
    return ranges


def calculate_atr(bars: list[Bar], period: int = 14) -> Optional[float]:
    """
    Simple average of the last ``period`` true ranges.

    Args:
        bars: Bars in chronological order
        period: Number of trailing true ranges to average

    Returns:
        ATR, or None when fewer than ``period`` bars are available
    """
    if period <= 0 or len(bars) < period:
        return None
    window = true_range_series(bars)[-period:]
    return sum(window) / period


def calculate_atr_or_partial(bars: list[Bar], period: int = 14) -> float:
    """ATR that shrinks its window to the available history; 0.0 for no bars."""
    if not bars:
        return 0.0
    return calculate_atr(bars, min(period, len(bars))) or 0.0


def calculate_natr(atr: float, current_price: float) -> float:
    """ATR as a percentage of price, 0.0 for a non-positive price."""
    if current_price <= 0:
        return 0.0
    return 100.0 * atr / current_price
