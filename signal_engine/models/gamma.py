"""Dealer gamma exposure models"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from signal_engine.utils.time import as_utc


class GammaImbalance(str, Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"


class ImbalanceStrength(str, Enum):
    STRONG = "STRONG"
    MODERATE = "MODERATE"
    WEAK = "WEAK"


class ExpectedBehavior(str, Enum):
    MEAN_REVERTING = "MEAN_REVERTING"
    TRENDING = "TRENDING"
    PINNING = "PINNING"
    VOLATILE = "VOLATILE"


class DataQuality(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class GammaExposureByStrike:
    """Dollar gamma per 1% move at one strike (dealer perspective)."""
    strike: float
    call_gex: float                 # Positive: dealers short calls
    put_gex: float                  # Negative: dealers short puts
    net_gex: float
    total_oi: float
    percent_of_max: float = 0.0


@dataclass(frozen=True)
class DealerPositioningSummary:
    symbol: str
    spot_price: float
    total_net_gex: float
    gamma_flip_level: Optional[float]
    put_wall: Optional[float]
    call_wall: Optional[float]
    max_gamma_strike: float
    imbalance: GammaImbalance
    imbalance_strength: ImbalanceStrength
    expected_behavior: ExpectedBehavior
    support_levels: tuple[float, ...] = ()
    resistance_levels: tuple[float, ...] = ()
    data_quality: DataQuality = DataQuality.HIGH
    expirations_analyzed: int = 0


@dataclass(frozen=True)
class GammaContext:
    """Dealer positioning snapshot with a freshness contract."""
    summary: DealerPositioningSummary
    by_strike: tuple[GammaExposureByStrike, ...] = ()
    implications: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    computed_at: Optional[datetime] = None
    stale_after: timedelta = field(default=timedelta(minutes=30))

    @property
    def symbol(self) -> str:
        return self.summary.symbol

    def age(self, now: datetime) -> Optional[timedelta]:
        if self.computed_at is None:
            return None
        return as_utc(now) - as_utc(self.computed_at)

    def is_stale(self, now: datetime) -> bool:
        """True when older than the freshness window or never stamped."""
        age = self.age(now)
        return age is None or age > self.stale_after
