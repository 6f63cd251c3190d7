"""
Emission thresholds.

Static thresholds come straight from the scanner parameters, with a relaxed
set outside regular hours. Adaptive thresholds start from the time-of-day
window, shift with the VIX level, and are floored by what the strategy
family needs in the current market regime.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from signal_engine.config.defaults import ScannerParams
from signal_engine.models.enums import Regime, VIXLevel
from signal_engine.models.features import SymbolFeatures

from .styles import TimeOfDayWindow, time_of_day_window

REASON_STRATEGY_DISABLED = "strategy_disabled_in_regime"
REASON_BASE_SCORE = "below_min_base_score"
REASON_STYLE_SCORE = "below_min_style_score"
REASON_RISK_REWARD = "below_min_risk_reward"

# Added to the regime floor when the strategy family is out of favour
DISABLED_STRATEGY_PENALTY = 10


class MarketRegime(str, Enum):
    TRENDING = "trending"
    RANGING = "ranging"
    CHOPPY = "choppy"
    VOLATILE = "volatile"


class StrategyCategory(str, Enum):
    BREAKOUT = "breakout"
    MEAN_REVERSION = "mean_reversion"
    TREND_CONTINUATION = "trend_continuation"
    GAMMA = "gamma"
    REVERSAL = "reversal"


@dataclass(frozen=True)
class WindowThresholds:
    label: str
    min_base: float
    min_style: float
    min_rr: float
    size_multiplier: float


@dataclass(frozen=True)
class VIXAdjustment:
    base: float
    style: float
    rr: float
    size_multiplier: float


@dataclass(frozen=True)
class RegimeFloor:
    min_base: float
    min_rr: float
    enabled: bool
    notes: str


TIME_WINDOW_THRESHOLDS = {
    TimeOfDayWindow.PRE_MARKET: WindowThresholds("Pre-Market", 80, 82, 2.0, 0.5),
    TimeOfDayWindow.OPENING_DRIVE: WindowThresholds("Opening Drive", 65, 70, 1.2, 1.0),
    TimeOfDayWindow.MID_MORNING: WindowThresholds("Mid-Morning", 72, 75, 1.5, 1.0),
    TimeOfDayWindow.LATE_MORNING: WindowThresholds("Late Morning", 75, 78, 1.6, 0.9),
    TimeOfDayWindow.LUNCH_CHOP: WindowThresholds("Lunch Chop", 85, 88, 2.2, 0.6),
    TimeOfDayWindow.EARLY_AFTERNOON: WindowThresholds("Early Afternoon", 72, 75, 1.5, 0.9),
    TimeOfDayWindow.AFTERNOON: WindowThresholds("Afternoon", 70, 73, 1.4, 1.0),
    TimeOfDayWindow.POWER_HOUR: WindowThresholds("Power Hour", 68, 72, 1.3, 1.1),
    TimeOfDayWindow.AFTER_HOURS: WindowThresholds("After Hours", 85, 88, 2.5, 0.3),
}

# Planning-only: nothing is sized on a weekend signal
WEEKEND_THRESHOLDS = WindowThresholds("Weekend", 60, 65, 1.3, 0.0)

VIX_ADJUSTMENTS = {
    VIXLevel.LOW: VIXAdjustment(-5, -3, -0.2, 1.2),
    VIXLevel.MEDIUM: VIXAdjustment(0, 0, 0.0, 1.0),
    VIXLevel.HIGH: VIXAdjustment(5, 5, 0.3, 0.7),
    VIXLevel.EXTREME: VIXAdjustment(15, 12, 0.7, 0.4),
}

REGIME_FLOORS = {
    MarketRegime.TRENDING: {
        StrategyCategory.BREAKOUT: RegimeFloor(65, 1.3, True, "Breakouts work well in trends"),
        StrategyCategory.MEAN_REVERSION: RegimeFloor(85, 2.0, False, "Fading the trend needs an extreme setup"),
        StrategyCategory.TREND_CONTINUATION: RegimeFloor(60, 1.2, True, "Best fit for trending markets"),
        StrategyCategory.GAMMA: RegimeFloor(70, 1.5, True, "Gamma plays can run with the trend"),
        StrategyCategory.REVERSAL: RegimeFloor(88, 2.2, False, "Reversals in trends are counter-trend"),
    },
    MarketRegime.RANGING: {
        StrategyCategory.BREAKOUT: RegimeFloor(85, 2.0, False, "Most breakouts fail inside a range"),
        StrategyCategory.MEAN_REVERSION: RegimeFloor(65, 1.3, True, "Mean reversion is the range play"),
        StrategyCategory.TREND_CONTINUATION: RegimeFloor(80, 1.8, False, "No trend to continue"),
        StrategyCategory.GAMMA: RegimeFloor(72, 1.5, True, "Gamma pinning works well in ranges"),
        StrategyCategory.REVERSAL: RegimeFloor(70, 1.4, True, "Range extremes reverse"),
    },
    MarketRegime.CHOPPY: {
        StrategyCategory.BREAKOUT: RegimeFloor(92, 2.5, False, "Chop produces false breakouts"),
        StrategyCategory.MEAN_REVERSION: RegimeFloor(78, 1.5, True, "Works with extra confirmation"),
        StrategyCategory.TREND_CONTINUATION: RegimeFloor(88, 2.2, False, "No trend in chop"),
        StrategyCategory.GAMMA: RegimeFloor(82, 1.8, True, "Needs wider stops"),
        StrategyCategory.REVERSAL: RegimeFloor(75, 1.5, True, "Reversals at chop extremes"),
    },
    MarketRegime.VOLATILE: {
        StrategyCategory.BREAKOUT: RegimeFloor(85, 2.0, True, "Breakouts need wider stops"),
        StrategyCategory.MEAN_REVERSION: RegimeFloor(80, 1.8, True, "Extreme moves often revert"),
        StrategyCategory.TREND_CONTINUATION: RegimeFloor(82, 2.0, True, "Ride volatility with smaller size"),
        StrategyCategory.GAMMA: RegimeFloor(78, 1.6, True, "Squeezes feed on volatility"),
        StrategyCategory.REVERSAL: RegimeFloor(72, 1.4, True, "Volatility creates reversals"),
    },
}

_CATEGORY_KEYWORDS = (
    ("breakout", StrategyCategory.BREAKOUT),
    ("reversion", StrategyCategory.MEAN_REVERSION),
    ("continuation", StrategyCategory.TREND_CONTINUATION),
    ("bounce", StrategyCategory.TREND_CONTINUATION),
    ("gamma", StrategyCategory.GAMMA),
    ("reversal", StrategyCategory.REVERSAL),
    ("power_hour", StrategyCategory.REVERSAL),
)


@dataclass(frozen=True)
class Thresholds:
    """Minimums a candidate must meet, with the context that produced them."""
    min_base: float
    min_style: float
    min_rr: float
    size_multiplier: float = 1.0
    label: str = "Static"
    window: Optional[TimeOfDayWindow] = None
    vix_level: Optional[VIXLevel] = None
    regime: Optional[MarketRegime] = None
    strategy_category: Optional[StrategyCategory] = None
    strategy_enabled: bool = True
    strategy_notes: str = ""
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ThresholdCheck:
    passed: bool
    reason: Optional[str] = None
    detail: str = ""


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def categorize_strategy(opportunity_type: str) -> StrategyCategory:
    """Strategy family of a detector type; unknown types count as breakouts."""
    lowered = opportunity_type.lower()
    for keyword, category in _CATEGORY_KEYWORDS:
        if keyword in lowered:
            return category
    return StrategyCategory.BREAKOUT


def market_regime(regime: Regime) -> MarketRegime:
    if regime in (Regime.TRENDING_UP, Regime.TRENDING_DOWN):
        return MarketRegime.TRENDING
    if regime == Regime.VOLATILE:
        return MarketRegime.VOLATILE
    return MarketRegime.RANGING


def static_thresholds(params: ScannerParams, is_regular_hours: bool) -> Thresholds:
    """Fixed scanner minimums, relaxed outside regular hours."""
    if is_regular_hours:
        return Thresholds(params.min_base_score, params.min_style_score, params.min_risk_reward)
    return Thresholds(
        params.weekend_min_base_score,
        params.weekend_min_style_score,
        params.weekend_min_risk_reward,
        label="Off-Hours",
    )


def weekend_thresholds() -> Thresholds:
    """Planning thresholds for weekend analysis, with zero position size."""
    return Thresholds(
        WEEKEND_THRESHOLDS.min_base,
        WEEKEND_THRESHOLDS.min_style,
        WEEKEND_THRESHOLDS.min_rr,
        size_multiplier=WEEKEND_THRESHOLDS.size_multiplier,
        label=WEEKEND_THRESHOLDS.label,
        window=TimeOfDayWindow.WEEKEND,
        warnings=("Weekend - planning thresholds, no position sizing",),
    )


def get_adaptive_thresholds(
    window: TimeOfDayWindow,
    vix_level: VIXLevel,
    regime: MarketRegime,
    opportunity_type: str
) -> Thresholds:
    """
    Combine time of day, volatility and regime into one set of minimums.

    The window sets the starting point and the VIX level shifts it. The
    regime floor for the strategy family then wins when it is stricter; a
    family that is out of favour in the regime has its floor raised by 10
    and is reported as disabled. Position size multiplies the window and
    VIX multipliers.

    Args:
        window: Time-of-day window of the snapshot
        vix_level: Volatility classification
        regime: Market regime
        opportunity_type: Detector type being evaluated

    Returns:
        Thresholds rounded to whole scores, 0.1 R and 0.01 size
    """
    if window == TimeOfDayWindow.WEEKEND:
        return weekend_thresholds()

    base = TIME_WINDOW_THRESHOLDS[window]
    vix = VIX_ADJUSTMENTS[vix_level]
    category = categorize_strategy(opportunity_type)
    floor = REGIME_FLOORS[regime][category]
    warnings = []

    if window in (TimeOfDayWindow.PRE_MARKET, TimeOfDayWindow.AFTER_HOURS):
        warnings.append("Outside regular trading hours - conservative thresholds")
    if not floor.enabled:
        warnings.append(f"{category.value} strategy not recommended in {regime.value} regime: {floor.notes}")

    regime_base = floor.min_base if floor.enabled else floor.min_base + DISABLED_STRATEGY_PENALTY
    min_base = max(base.min_base + vix.base, regime_base)
    min_style = base.min_style + vix.style
    min_rr = max(base.min_rr + vix.rr, floor.min_rr)
    size = base.size_multiplier * vix.size_multiplier

    if min_base > 85:
        warnings.append("Very high threshold - only best-in-class setups will qualify")
    if size < 0.5:
        warnings.append("Low position size recommended - high volatility environment")

    return Thresholds(
        min_base=_round_half_up(min_base),
        min_style=_round_half_up(min_style),
        min_rr=_round_half_up(min_rr, 1),
        size_multiplier=_round_half_up(size, 2),
        label=base.label,
        window=window,
        vix_level=vix_level,
        regime=regime,
        strategy_category=category,
        strategy_enabled=floor.enabled,
        strategy_notes=floor.notes,
        warnings=tuple(warnings),
    )


def resolve_thresholds(params: ScannerParams, features: SymbolFeatures, opportunity_type: str) -> Thresholds:
    """Adaptive thresholds when enabled in the scanner parameters, static otherwise."""
    if not params.adaptive_thresholds:
        return static_thresholds(params, features.session.is_regular_hours)
    return get_adaptive_thresholds(
        time_of_day_window(features),
        features.pattern.vix_level or VIXLevel.MEDIUM,
        market_regime(features.regime),
        opportunity_type,
    )


def passes_thresholds(
    thresholds: Thresholds,
    base_score: float,
    style_score: float,
    risk_reward: float
) -> ThresholdCheck:
    """First failing check, in order: regime, base score, style score, R:R."""
    if not thresholds.strategy_enabled:
        return ThresholdCheck(
            False,
            REASON_STRATEGY_DISABLED,
            f"Strategy disabled in {thresholds.regime.value if thresholds.regime else 'current'} regime: "
            f"{thresholds.strategy_notes}",
        )
    if base_score < thresholds.min_base:
        return ThresholdCheck(
            False,
            REASON_BASE_SCORE,
            f"Base score {base_score:.1f} < threshold {thresholds.min_base:g} ({thresholds.label})",
        )
    if style_score < thresholds.min_style:
        return ThresholdCheck(
            False,
            REASON_STYLE_SCORE,
            f"Style score {style_score:.1f} < threshold {thresholds.min_style:g}",
        )
    if risk_reward < thresholds.min_rr:
        return ThresholdCheck(
            False,
            REASON_RISK_REWARD,
            f"Risk/Reward {risk_reward:.1f} < threshold {thresholds.min_rr:g}",
        )
    return ThresholdCheck(True)
