"""Point-in-time feature snapshot consumed by detectors"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..data.models import Bar
from .enums import Regime, VIXLevel


class FlowAggressiveness(str, Enum):
    """How aggressively institutional flow is lifting offers / hitting bids."""
    PASSIVE = "PASSIVE"
    NORMAL = "NORMAL"
    AGGRESSIVE = "AGGRESSIVE"
    VERY_AGGRESSIVE = "VERY_AGGRESSIVE"


class ContextTier(str, Enum):
    """Resolution tier that supplied a context block."""
    LIVE = "live"
    HISTORICAL = "historical"
    DEFAULT = "default"


@dataclass(frozen=True)
class PriceFeatures:
    current: float
    open: float
    high: float
    low: float
    prev_close: float

    @property
    def change_pct(self) -> float:
        """Percent change from the previous close, 0 when undefined."""
        if self.prev_close <= 0:
            return 0.0
        return (self.current - self.prev_close) / self.prev_close * 100


@dataclass(frozen=True)
class VolumeFeatures:
    current: float
    avg: float
    relative_to_avg: float = 1.0


@dataclass(frozen=True)
class MovingAverages:
    ema8: float
    ema21: float
    ema50: float
    ema200: float


@dataclass(frozen=True)
class VWAPFeatures:
    value: float
    distance_pct: float = 0.0


@dataclass(frozen=True)
class SessionFeatures:
    is_regular_hours: bool
    minutes_since_open: int = 0
    allow_off_hours: bool = False


@dataclass(frozen=True)
class PatternFeatures:
    """Pattern flags and session reference levels."""
    breakout_bullish: bool = False
    breakout_bearish: bool = False
    mean_reversion_long: bool = False
    mean_reversion_short: bool = False
    trend_continuation_long: bool = False
    trend_continuation_short: bool = False
    orb_high: float = 0.0               # 0 until the opening range completes
    orb_low: float = 0.0
    day_high: float = 0.0
    day_low: float = 0.0
    premarket_high: Optional[float] = None
    premarket_low: Optional[float] = None
    prior_day_high: Optional[float] = None
    prior_day_low: Optional[float] = None
    prior_day_close: Optional[float] = None
    patience_candle: bool = False
    vix_level: Optional[VIXLevel] = None


@dataclass(frozen=True)
class TimeframeFeatures:
    """Self-contained features for one auxiliary timeframe."""
    price_current: float
    price_prev: float
    rsi14: float = 50.0
    ema21: float = 0.0

    @property
    def momentum_pct(self) -> float:
        if self.price_prev <= 0:
            return 0.0
        return (self.price_current - self.price_prev) / self.price_prev * 100


@dataclass(frozen=True)
class FlowContext:
    """Live options flow context returned by a flow provider."""
    sweep_count: int
    block_count: int
    total_premium: float
    flow_score: float
    institutional_conviction: float
    buy_pressure: float = 50.0
    large_trade_pct: float = 0.0
    aggressiveness: FlowAggressiveness = FlowAggressiveness.NORMAL


@dataclass(frozen=True)
class FlowFeatures:
    sweep_count: int = 0
    block_count: int = 0
    total_premium: float = 0.0
    flow_score: float = 50.0
    flow_bias: str = "neutral"
    institutional_conviction: float = 20.0
    buy_pressure: float = 50.0
    large_trade_pct: float = 0.0
    aggressiveness: FlowAggressiveness = FlowAggressiveness.NORMAL
    source: ContextTier = ContextTier.DEFAULT


@dataclass(frozen=True)
class GreeksFeatures:
    gamma_risk: str = "medium"          # high | medium | low
    dealer_positioning: Optional[str] = None
    source: ContextTier = ContextTier.DEFAULT


@dataclass(frozen=True)
class SymbolFeatures:
    """Immutable snapshot keyed by symbol and bar time."""
    symbol: str
    time: datetime
    price: PriceFeatures
    volume: VolumeFeatures
    ema: MovingAverages
    rsi: float
    atr: float
    vwap: VWAPFeatures
    session: SessionFeatures
    pattern: PatternFeatures
    regime: Regime = Regime.RANGING
    mtf: dict[str, TimeframeFeatures] = field(default_factory=dict)
    flow: FlowFeatures = field(default_factory=FlowFeatures)
    greeks: GreeksFeatures = field(default_factory=GreeksFeatures)
    recent_bars: tuple[Bar, ...] = ()

    def timeframe(self, name: str) -> Optional[TimeframeFeatures]:
        return self.mtf.get(name)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe mapping of the snapshot (recent bars omitted)."""
        data = asdict(self)
        data.pop("recent_bars", None)
        data["time"] = self.time.isoformat()
        data["regime"] = self.regime.value
        data["pattern"]["vix_level"] = self.pattern.vix_level.value if self.pattern.vix_level else None
        data["flow"]["aggressiveness"] = self.flow.aggressiveness.value
        data["flow"]["source"] = self.flow.source.value
        data["greeks"]["source"] = self.greeks.source.value
        return data
