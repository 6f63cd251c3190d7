"""Risk placement and accounting result models"""

from dataclasses import dataclass
from typing import Optional

from .levels import KeyLevelStrength, KeyLevelType


@dataclass(frozen=True)
class StopAlternative:
    price: float
    level_price: float
    level_label: str
    level_type: KeyLevelType
    strength: KeyLevelStrength
    score: float
    distance_percent: float
    reasoning: str


@dataclass(frozen=True)
class LevelAwareStopResult:
    """Recommended stop with the level it hides behind."""
    recommended_stop: float
    stop_distance: float
    stop_distance_percent: float
    level_price: float
    level_type: KeyLevelType
    level_label: str
    level_strength: KeyLevelStrength
    confidence: str                             # high | medium | low
    reasoning: str
    alternatives: tuple[StopAlternative, ...] = ()
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class TargetLevel:
    price: float
    r_multiple: float
    label: str
    level_type: Optional[KeyLevelType] = None


@dataclass(frozen=True)
class LevelAwareTargets:
    t1: TargetLevel
    t2: TargetLevel
    t3: TargetLevel
    reasoning: tuple[str, ...] = ()

    @property
    def prices(self) -> tuple[float, float, float]:
        return (self.t1.price, self.t2.price, self.t3.price)


@dataclass(frozen=True)
class StopValidation:
    is_valid: bool
    issues: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class PnLResult:
    """Realized P&L of a round-trip option trade after costs."""
    gross_pnl: float
    gross_pnl_percent: float
    entry_commission: float
    exit_commission: float
    total_commission: float
    slippage_cost: float
    net_pnl: float
    net_pnl_percent: float
    commission_percent_of_gross: float
    slippage_percent_of_gross: float
    cost_percent_of_gross: float
    breakeven_move_percent: float
