"""Structure levels and normalized key levels"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class StructureLevelType(str, Enum):
    SWING_HIGH = "swing_high"
    SWING_LOW = "swing_low"
    LIQUIDITY_HIGH = "liquidity_high"
    LIQUIDITY_LOW = "liquidity_low"
    ORDER_BLOCK_BULL = "order_block_bull"
    ORDER_BLOCK_BEAR = "order_block_bear"
    FVG_BULL = "fvg_bull"
    FVG_BEAR = "fvg_bear"
    BOS_BULL = "bos_bull"
    BOS_BEAR = "bos_bear"
    CHOCH_BULL = "choch_bull"
    CHOCH_BEAR = "choch_bear"
    CONFLUENCE = "confluence"


class LevelStrength(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


@dataclass(frozen=True)
class StructureLevel:
    """A level derived from bar history by the structure detector."""
    type: StructureLevelType
    price: float
    label: str
    strength: LevelStrength
    bar_index: int
    time: Optional[datetime] = None
    price_end: Optional[float] = None   # Zone levels (order blocks, gaps)
    touches: Optional[int] = None


class KeyLevelType(str, Enum):
    ORB = "ORB"
    VWAP = "VWAP"
    PRIOR_DAY_HL = "PriorDayHL"
    WEEK_HL = "WeekHL"
    MONTH_HL = "MonthHL"
    PIVOT = "Pivot"
    FIB = "Fib"
    BOLLINGER = "Bollinger"
    STRUCTURE = "Structure"
    ATR = "ATR"


class KeyLevelStrength(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"

    @property
    def tier(self) -> int:
        return {"strong": 3, "moderate": 2, "weak": 1}[self.value]


@dataclass(frozen=True)
class KeyLevel:
    """Normalized support/resistance reference used by risk placement."""
    price: float
    type: KeyLevelType
    strength: KeyLevelStrength
    label: str
    touch_count: Optional[int] = None


@dataclass(frozen=True)
class ReferenceLevels:
    """Externally supplied reference levels for one symbol."""
    prior_day_high: Optional[float] = None
    prior_day_low: Optional[float] = None
    week_high: Optional[float] = None
    week_low: Optional[float] = None
    month_high: Optional[float] = None
    month_low: Optional[float] = None
    orb_high: Optional[float] = None
    orb_low: Optional[float] = None
    premarket_high: Optional[float] = None
    premarket_low: Optional[float] = None
    vwap: Optional[float] = None
    vwap_upper_band: Optional[float] = None
    vwap_lower_band: Optional[float] = None
    bollinger_upper: Optional[float] = None
    bollinger_lower: Optional[float] = None
