"""Enumerations shared across detectors, risk placement and signals."""

from enum import Enum


class Direction(str, Enum):
    """Trade direction of a detector or signal."""
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class AssetClass(str, Enum):
    """Instrument classification used to scope detectors."""
    INDEX = "INDEX"
    EQUITY_ETF = "EQUITY_ETF"
    STOCK = "STOCK"


class TradeClass(str, Enum):
    """Holding-period class driving stop distance limits."""
    SCALP = "SCALP"
    DAY = "DAY"
    SWING = "SWING"
    LEAP = "LEAP"


class TradingStyle(str, Enum):
    """Trading styles scored for every candidate signal."""
    SCALP = "scalp"
    DAY_TRADE = "day_trade"
    SWING = "swing"


class Regime(str, Enum):
    """Coarse market regime derived from the moving average stack."""
    TRENDING_UP = "trending_up"
    TRENDING_DOWN = "trending_down"
    RANGING = "ranging"
    VOLATILE = "volatile"


class VIXLevel(str, Enum):
    """Volatility classification from the VIX print."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"

    @classmethod
    def from_value(cls, vix: float) -> "VIXLevel":
        """Below 15 low, below 25 medium, below 35 high, else extreme."""
        if vix < 15:
            return cls.LOW
        if vix < 25:
            return cls.MEDIUM
        if vix < 35:
            return cls.HIGH
        return cls.EXTREME


STYLE_TRADE_CLASS = {
    TradingStyle.SCALP: TradeClass.SCALP,
    TradingStyle.DAY_TRADE: TradeClass.DAY,
    TradingStyle.SWING: TradeClass.SWING,
}
