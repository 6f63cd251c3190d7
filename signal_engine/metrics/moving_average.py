"""Simple and exponential moving averages"""

from typing import Optional


def calculate_sma(values: list[float], period: int) -> Optional[float]:
    """
    Simple moving average of the trailing period values.

    Args:
        values: Series in chronological order
        period: Window length

    Returns:
        SMA or None if insufficient data
    """
    if period <= 0 or len(values) < period:
        return None
    window = values[-period:]
    return sum(window) / period


def calculate_ema_series(values: list[float], period: int) -> list[float]:
    """
    Exponential moving average series.

    The series is seeded with the SMA of the first period values. With fewer
    values than the period, the first value seeds the average instead.

    Args:
        values: Series in chronological order
        period: EMA period

    Returns:
        EMA values aligned with the tail of the input (empty for empty input)
    """
    if not values or period <= 0:
        return []

    k = 2.0 / (period + 1)

    if len(values) < period:
        ema = values[0]
        result = [ema]
        for value in values[1:]:
            ema = value * k + ema * (1 - k)
            result.append(ema)
        return result

    ema = sum(values[:period]) / period
    result = [ema]
    for value in values[period:]:
        ema = value * k + ema * (1 - k)
        result.append(ema)
    return result


def calculate_ema(values: list[float], period: int) -> Optional[float]:
    """Latest EMA value, None for an empty series."""
    series = calculate_ema_series(values, period)
    return series[-1] if series else None
