"""Coarse market regime classification"""

from signal_engine.models.enums import Regime

from .atr import calculate_natr


def classify_regime(
    price: float,
    ema21: float,
    ema50: float,
    atr: float,
    volatile_atr_pct: float = 2.0
) -> Regime:
    """
    Classify the regime from the moving average stack and ATR%.

    Args:
        price: Current price
        ema21: Medium EMA
        ema50: Slow EMA
        atr: Average true range
        volatile_atr_pct: ATR as % of price above which the regime is volatile

    Returns:
        Regime classification
    """
    if calculate_natr(atr, price) > volatile_atr_pct:
        return Regime.VOLATILE

    if price > ema21 > ema50:
        return Regime.TRENDING_UP

    if price < ema21 < ema50:
        return Regime.TRENDING_DOWN

    return Regime.RANGING
