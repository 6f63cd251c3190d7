"""Volume participation metrics"""

from signal_engine.data.models import Bar

from .moving_average import calculate_sma


def trailing_average_volume(history: list[Bar], period: int = 20) -> float:
    """
    Mean volume of the most recent bars in a history window.

    The current bar is excluded by the caller so that a volume spike does
    not dilute its own baseline. Short histories average what they have.

    Args:
        history: Bars preceding the current bar, oldest first
        period: Maximum number of trailing bars to average

    Returns:
        Average volume, 0.0 when there is no history
    """
    window = history[-period:] if period > 0 else []
    if not window:
        return 0.0
    return calculate_sma([bar.volume for bar in window], len(window))


def relative_volume(current_volume: float, average_volume: float) -> float:
    """
    Participation of the current bar relative to its baseline.

    A missing or zero baseline is reported as the neutral ratio 1.0 so that
    fresh listings and the first bar of a series neither boost nor penalize
    volume-weighted scores.
    """
    if average_volume <= 0:
        return 1.0
    return current_volume / average_volume
