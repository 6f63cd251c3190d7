"""RSI momentum oscillator"""

from typing import Optional


def calculate_rsi(closes: list[float], period: int = 14) -> Optional[float]:
    """
    Relative Strength Index with Wilder smoothing.

    Args:
        closes: Close prices in chronological order
        period: RSI period (default 14)

    Returns:
        RSI in [0, 100] or None if there are not more than period closes
    """
    if period <= 0 or len(closes) <= period:
        return None

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        change = closes[i] - closes[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period

    for i in range(period + 1, len(closes)):
        change = closes[i] - closes[i - 1]
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))
