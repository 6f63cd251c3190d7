"""
Trading style scoring.

Every fired detector is scored for three styles (scalp, day trade, swing).
The base score is multiplied by a per-style suitability modifier built from
session timing, volatility, volume, key level proximity and regime, then by
the dealer gamma modifier when a gamma context is available.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from signal_engine.models.enums import Regime, TradingStyle
from signal_engine.models.features import SymbolFeatures
from signal_engine.models.signals import StyleScores
from signal_engine.utils.time import is_weekend

STYLES = (TradingStyle.SCALP, TradingStyle.DAY_TRADE, TradingStyle.SWING)
REGULAR_SESSION_MINUTES = 390


class TimeOfDayWindow(str, Enum):
    PRE_MARKET = "pre_market"
    OPENING_DRIVE = "opening_drive"
    MID_MORNING = "mid_morning"
    LATE_MORNING = "late_morning"
    LUNCH_CHOP = "lunch_chop"
    EARLY_AFTERNOON = "early_afternoon"
    AFTERNOON = "afternoon"
    POWER_HOUR = "power_hour"
    AFTER_HOURS = "after_hours"
    WEEKEND = "weekend"


# (scalp, day_trade, swing)
TIME_OF_DAY_MODIFIERS = {
    TimeOfDayWindow.PRE_MARKET: (0.6, 0.7, 0.9),
    TimeOfDayWindow.OPENING_DRIVE: (1.35, 1.15, 0.75),
    TimeOfDayWindow.MID_MORNING: (1.1, 1.15, 1.0),
    TimeOfDayWindow.LATE_MORNING: (1.0, 1.1, 1.05),
    TimeOfDayWindow.LUNCH_CHOP: (0.55, 0.75, 1.0),
    TimeOfDayWindow.EARLY_AFTERNOON: (0.85, 1.0, 1.05),
    TimeOfDayWindow.AFTERNOON: (0.95, 1.1, 1.0),
    TimeOfDayWindow.POWER_HOUR: (1.25, 1.2, 0.85),
    TimeOfDayWindow.AFTER_HOURS: (0.5, 0.6, 0.9),
    TimeOfDayWindow.WEEKEND: (0.4, 0.5, 1.2),
}

REGIME_MODIFIERS = {
    Regime.TRENDING_UP: (1.0, 1.15, 1.25),
    Regime.TRENDING_DOWN: (1.0, 1.15, 1.25),
    Regime.RANGING: (1.1, 1.0, 0.85),
    Regime.VOLATILE: (0.85, 1.1, 1.2),
}

# Detector families that suit one holding period better than the others
OPPORTUNITY_TYPE_MODIFIERS = {
    "gamma_pinning": (1.2, 1.0, 0.6),
    "gamma_flip_bullish": (1.1, 1.1, 0.8),
    "vwap_reversion_short": (1.1, 1.0, 0.8),
    "mean_reversion_long": (1.0, 1.05, 1.0),
    "mean_reversion_short": (1.0, 1.05, 1.0),
    "breakout_bullish": (0.95, 1.1, 1.05),
    "breakout_bearish": (0.95, 1.1, 1.05),
    "institutional_flow_bullish": (1.05, 1.1, 1.0),
    "institutional_flow_bearish": (1.05, 1.1, 1.0),
}


@dataclass
class StyleModifierResult:
    modifiers: dict[TradingStyle, float]
    window: TimeOfDayWindow
    reasons: dict[TradingStyle, list[str]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def time_of_day_window(features: SymbolFeatures) -> TimeOfDayWindow:
    """Trading window of the snapshot, from minutes since the regular open."""
    minutes = features.session.minutes_since_open
    if not features.session.is_regular_hours:
        if is_weekend(features.time):
            return TimeOfDayWindow.WEEKEND
        if minutes < 0:
            return TimeOfDayWindow.PRE_MARKET
        return TimeOfDayWindow.AFTER_HOURS

    if minutes < 30:
        return TimeOfDayWindow.OPENING_DRIVE
    if minutes < 90:
        return TimeOfDayWindow.MID_MORNING
    if minutes < 120:
        return TimeOfDayWindow.LATE_MORNING
    if minutes < 240:
        return TimeOfDayWindow.LUNCH_CHOP
    if minutes < 300:
        return TimeOfDayWindow.EARLY_AFTERNOON
    if minutes < 330:
        return TimeOfDayWindow.AFTERNOON
    return TimeOfDayWindow.POWER_HOUR


def _apply(values: list[float], factors: tuple[float, float, float]) -> None:
    for i, factor in enumerate(factors):
        values[i] *= factor


def calculate_style_modifiers(features: SymbolFeatures) -> StyleModifierResult:
    """
    Per-style suitability multipliers for a snapshot.

    Returns:
        StyleModifierResult with each multiplier clamped to [0.5, 1.5]
    """
    values = [1.0, 1.0, 1.0]
    reasons: dict[TradingStyle, list[str]] = {style: [] for style in STYLES}
    warnings = []

    window = time_of_day_window(features)
    time_mods = TIME_OF_DAY_MODIFIERS[window]
    _apply(values, time_mods)
    if time_mods[0] > 1.1:
        reasons[TradingStyle.SCALP].append(f"{window.value} is excellent for scalping")
    elif time_mods[0] < 0.8:
        reasons[TradingStyle.SCALP].append(f"{window.value} is poor for scalping")
    if time_mods[1] > 1.1:
        reasons[TradingStyle.DAY_TRADE].append(f"{window.value} favors day trades")
    if time_mods[2] > 1.1:
        reasons[TradingStyle.SWING].append(f"{window.value} good for swing entries")
    elif time_mods[2] < 0.8:
        reasons[TradingStyle.SWING].append(f"Avoid swing entries during {window.value}")

    # Volatility
    price = features.price.current
    atr_pct = features.atr / price * 100 if price > 0 else 0.0
    if atr_pct > 2.5:
        _apply(values, (0.7, 1.05, 1.25))
        reasons[TradingStyle.SCALP].append("High volatility (ATR >2.5%) - tight scalp stops risky")
    elif atr_pct > 1.5:
        _apply(values, (0.9, 1.1, 1.15))
    elif 0 < atr_pct < 0.5:
        _apply(values, (1.15, 0.85, 0.65))
        reasons[TradingStyle.SWING].append("Low volatility means slow moves - poor for swings")
    elif 0 < atr_pct < 1.0:
        _apply(values, (1.1, 0.95, 0.8))

    # Volume
    rvol = features.volume.relative_to_avg
    if rvol > 1.5:
        _apply(values, (1.3, 1.15, 1.0))
        reasons[TradingStyle.SCALP].append(f"Volume spike ({rvol:.1f}x avg) - better fills")
    elif rvol < 0.5:
        _apply(values, (0.6, 0.75, 0.95))
        warnings.append("Low volume - wide spreads likely")
    elif rvol < 0.75:
        _apply(values, (0.8, 0.9, 0.98))

    # VWAP proximity gives a clear reference for entry and exit
    if features.vwap.value > 0 and abs(features.vwap.distance_pct) < 0.25:
        _apply(values, (1.25, 1.15, 1.1))
        reasons[TradingStyle.SCALP].append("Near vwap - clear entry/exit reference")

    _apply(values, REGIME_MODIFIERS[features.regime])

    # Little runway left in the regular session
    minutes_to_close = REGULAR_SESSION_MINUTES - features.session.minutes_since_open
    if features.session.is_regular_hours:
        if minutes_to_close < 30:
            _apply(values, (1.1, 0.6, 1.0))
            reasons[TradingStyle.DAY_TRADE].append("Less than 30 minutes - limited day trade runway")
        elif minutes_to_close < 60:
            _apply(values, (1.0, 0.85, 1.0))

    if window == TimeOfDayWindow.WEEKEND:
        warnings.append("Weekend - signals for planning only")
    elif window in (TimeOfDayWindow.PRE_MARKET, TimeOfDayWindow.AFTER_HOURS):
        warnings.append("Outside regular hours - liquidity may be thin")

    modifiers = {style: min(1.5, max(0.5, value)) for style, value in zip(STYLES, values)}
    return StyleModifierResult(modifiers=modifiers, window=window, reasons=reasons, warnings=warnings)


def calculate_style_scores(
    base_score: float,
    opportunity_type: str,
    features: SymbolFeatures,
    gamma_modifiers: Optional[dict[TradingStyle, float]] = None,
    style_modifiers: Optional[StyleModifierResult] = None
) -> StyleScores:
    """
    Score a fired detector for each trading style.

    Args:
        base_score: Detector composite score (0-100)
        opportunity_type: Detector type
        features: Snapshot the detector fired on
        gamma_modifiers: Dealer gamma multiplier per style
        style_modifiers: Precomputed suitability modifiers for the snapshot

    Returns:
        StyleScores; the recommended style is the highest scoring one, ties
        going to the shorter holding period
    """
    style_modifiers = style_modifiers or calculate_style_modifiers(features)
    type_mods = OPPORTUNITY_TYPE_MODIFIERS.get(opportunity_type, (1.0, 1.0, 1.0))
    gamma_modifiers = gamma_modifiers or {}

    scores = {}
    for i, style in enumerate(STYLES):
        score = base_score * type_mods[i] * style_modifiers.modifiers[style]
        score *= gamma_modifiers.get(style, 1.0)
        scores[style] = min(100.0, max(0.0, score))

    recommended = max(STYLES, key=lambda style: scores[style])
    return StyleScores(
        scalp=scores[TradingStyle.SCALP],
        day_trade=scores[TradingStyle.DAY_TRADE],
        swing=scores[TradingStyle.SWING],
        recommended=recommended,
        recommended_score=scores[recommended],
    )
