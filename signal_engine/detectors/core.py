"""
Core opportunity detectors: gamma flip, VWAP reversion, mean reversion,
gamma pinning and breakouts.
"""

from typing import Optional

from signal_engine.data.models import OptionsChainData
from signal_engine.models.enums import AssetClass, Direction, Regime
from signal_engine.models.features import SymbolFeatures

from .base import (
    ALL_ASSET_CLASSES,
    OpportunityDetector,
    ScoreFactor,
    create_detector,
    should_run_detector,
)

DEFAULT_GAMMA_FLIP_CUTOFF_MINUTES = 240
NO_ACCELERATION_CHANGE_PCT = 0.1


def _tiered(value: float, tiers: tuple[tuple[float, float], ...], floor: float) -> float:
    """First score whose threshold `value` meets, scanning high to low."""
    for threshold, score in tiers:
        if value >= threshold:
            return score
    return floor


def relative_volume_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _tiered(features.volume.relative_to_avg, ((2.0, 100.0), (1.5, 85.0), (1.2, 70.0), (1.0, 55.0)), 40.0)


def momentum_not_accelerating(features: SymbolFeatures) -> bool:
    """
    The latest bar moves no faster than the 5m average pace.

    Without a 5m series the latest change must stay under 0.1%.
    """
    change = features.price.change_pct
    tf_5m = features.timeframe("5m")
    if tf_5m is None:
        return change <= NO_ACCELERATION_CHANGE_PCT
    return change <= max(0.0, tf_5m.momentum_pct / 5)


# Gamma flip

def gamma_flip_cross_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    """Fresher crosses (closer to the flip) score higher."""
    if options_data is None or not options_data.gamma_flip_level:
        return 0.0
    price = features.price.current
    distance = (price - options_data.gamma_flip_level) / price * 100 if price > 0 else 0.0
    if distance <= 0.1:
        return 100.0
    if distance <= 0.3:
        return 85.0
    if distance <= 0.5:
        return 70.0
    return 50.0


def gamma_flip_dealer_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    if options_data is None or options_data.dealer_net_gamma is None:
        return 50.0
    return 85.0 if options_data.dealer_net_gamma > 0 else 60.0


def bullish_rsi_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    rsi = features.rsi
    if 50 <= rsi <= 70:
        return 90.0
    if rsi > 70:
        return 60.0
    return 40.0


def gamma_flip_bullish_detector(cutoff_minutes: int = DEFAULT_GAMMA_FLIP_CUTOFF_MINUTES) -> OpportunityDetector:
    """Gamma flip detector active only `cutoff_minutes` after the open."""

    def detect(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
        if options_data is None or not options_data.is_0dte:
            return False
        flip = options_data.gamma_flip_level
        if flip is None or flip <= 0:
            return False
        if features.session.minutes_since_open < cutoff_minutes:
            return False
        return features.price.prev_close <= flip < features.price.current

    return create_detector(
        type="gamma_flip_bullish",
        direction=Direction.LONG,
        asset_classes=(AssetClass.INDEX,),
        requires_options_data=True,
        detect=detect,
        score_factors=(
            ScoreFactor("flip_cross", 0.35, gamma_flip_cross_score),
            ScoreFactor("volume", 0.25, relative_volume_score),
            ScoreFactor("dealer_gamma", 0.20, gamma_flip_dealer_score),
            ScoreFactor("momentum", 0.20, bullish_rsi_score),
        ),
        ideal_timeframe="1m",
    )


# VWAP reversion

def vwap_extension_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    """Deeper extensions (within the tradeable band) revert harder."""
    return _tiered(abs(features.vwap.distance_pct), ((1.2, 100.0), (0.9, 85.0), (0.6, 70.0)), 55.0)


def overbought_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _tiered(features.rsi, ((75.0, 100.0), (70.0, 90.0), (65.0, 75.0), (60.0, 60.0)), 45.0)


def oversold_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _tiered(100 - features.rsi, ((75.0, 100.0), (70.0, 90.0), (65.0, 75.0), (60.0, 60.0)), 45.0)


def volume_decline_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    rvol = features.volume.relative_to_avg
    if rvol < 0.6:
        return 100.0
    if rvol < 0.8:
        return 80.0
    if rvol < 1.0:
        return 60.0
    return 30.0


def vwap_reversion_session_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    minutes = features.session.minutes_since_open
    if minutes < 30:
        return 40.0
    if minutes <= 300:
        return 90.0
    return 60.0


def detect_vwap_reversion_short(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    if not features.session.is_regular_hours:
        return False
    if not 0.3 <= features.vwap.distance_pct <= 1.5:
        return False
    if not 55 <= features.rsi <= 80:
        return False
    if features.volume.relative_to_avg >= 1.0:
        return False
    return momentum_not_accelerating(features)


vwap_reversion_short = create_detector(
    type="vwap_reversion_short",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_vwap_reversion_short,
    score_factors=(
        ScoreFactor("vwap_extension", 0.35, vwap_extension_score),
        ScoreFactor("rsi_overbought", 0.25, overbought_score),
        ScoreFactor("volume_decline", 0.25, volume_decline_score),
        ScoreFactor("session_timing", 0.15, vwap_reversion_session_score),
    ),
)


# Mean reversion

def regime_fade_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return {
        Regime.RANGING: 100.0,
        Regime.VOLATILE: 70.0,
    }.get(features.regime, 50.0)


def detect_mean_reversion_short(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return (
        should_run_detector(features)
        and features.rsi > 70
        and features.vwap.distance_pct > 0.5
        and features.volume.relative_to_avg >= 1.2
        and features.regime != Regime.TRENDING_UP
    )


def detect_mean_reversion_long(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return (
        should_run_detector(features)
        and features.rsi < 30
        and features.vwap.distance_pct < -0.5
        and features.volume.relative_to_avg >= 1.2
        and features.regime != Regime.TRENDING_DOWN
    )


mean_reversion_short = create_detector(
    type="mean_reversion_short",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_mean_reversion_short,
    score_factors=(
        ScoreFactor("rsi_extreme", 0.35, overbought_score),
        ScoreFactor("vwap_extension", 0.30, vwap_extension_score),
        ScoreFactor("volume", 0.20, relative_volume_score),
        ScoreFactor("regime", 0.15, regime_fade_score),
    ),
)

mean_reversion_long = create_detector(
    type="mean_reversion_long",
    direction=Direction.LONG,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_mean_reversion_long,
    score_factors=(
        ScoreFactor("rsi_extreme", 0.35, oversold_score),
        ScoreFactor("vwap_extension", 0.30, vwap_extension_score),
        ScoreFactor("volume", 0.20, relative_volume_score),
        ScoreFactor("regime", 0.15, regime_fade_score),
    ),
)


# Gamma pinning

def pin_proximity_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    if options_data is None or not options_data.max_gamma_strike:
        return 0.0
    price = features.price.current
    distance = abs(price - options_data.max_gamma_strike) / price * 100 if price > 0 else 100.0
    if distance <= 0.1:
        return 100.0
    if distance <= 0.25:
        return 85.0
    return 65.0


def expiry_proximity_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    if options_data is None or options_data.minutes_to_expiry is None:
        return 0.0
    minutes = options_data.minutes_to_expiry
    if minutes <= 30:
        return 100.0
    if minutes <= 60:
        return 85.0
    return 70.0


def neutral_rsi_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return max(0.0, 100.0 - abs(features.rsi - 50) * 5)


def low_momentum_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return max(0.0, 100.0 - abs(features.price.change_pct) * 400)


def detect_gamma_pinning(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    if options_data is None:
        return False
    strike = options_data.max_gamma_strike
    price = features.price.current
    if not strike or price <= 0:
        return False
    if abs(price - strike) / price * 100 > 0.5:
        return False
    if options_data.dealer_net_gamma is None or options_data.dealer_net_gamma <= 0:
        return False
    if abs(features.price.change_pct) >= 0.15:
        return False
    if not 40 <= features.rsi <= 60:
        return False
    return options_data.minutes_to_expiry is not None and options_data.minutes_to_expiry <= 120


gamma_pinning = create_detector(
    type="gamma_pinning",
    direction=Direction.NEUTRAL,
    asset_classes=(AssetClass.INDEX,),
    requires_options_data=True,
    detect=detect_gamma_pinning,
    score_factors=(
        ScoreFactor("pin_proximity", 0.35, pin_proximity_score),
        ScoreFactor("time_to_expiry", 0.25, expiry_proximity_score),
        ScoreFactor("rsi_neutral", 0.20, neutral_rsi_score),
        ScoreFactor("low_momentum", 0.20, low_momentum_score),
    ),
    ideal_timeframe="1m",
)


# Breakouts

def trend_alignment_score(direction: Direction):
    def evaluate(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
        aligned = features.pattern.trend_continuation_long if direction == Direction.LONG \
            else features.pattern.trend_continuation_short
        if aligned:
            return 100.0
        favoured = Regime.TRENDING_UP if direction == Direction.LONG else Regime.TRENDING_DOWN
        return 70.0 if features.regime == favoured else 40.0
    return evaluate


def breakout_flow_score(direction: Direction):
    def evaluate(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
        score = features.flow.flow_score
        return score if direction == Direction.LONG else 100.0 - score
    return evaluate


def breakout_session_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    minutes = features.session.minutes_since_open
    if 15 <= minutes <= 120:
        return 100.0
    if minutes < 15:
        return 60.0
    if minutes <= 300:
        return 75.0
    return 50.0


def detect_breakout_bullish(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return (
        should_run_detector(features)
        and features.pattern.breakout_bullish
        and features.volume.relative_to_avg >= 1.5
    )


def detect_breakout_bearish(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return (
        should_run_detector(features)
        and features.pattern.breakout_bearish
        and features.volume.relative_to_avg >= 1.5
    )


breakout_bullish = create_detector(
    type="breakout_bullish",
    direction=Direction.LONG,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_breakout_bullish,
    score_factors=(
        ScoreFactor("volume", 0.35, relative_volume_score),
        ScoreFactor("trend_alignment", 0.30, trend_alignment_score(Direction.LONG)),
        ScoreFactor("flow", 0.20, breakout_flow_score(Direction.LONG)),
        ScoreFactor("session_timing", 0.15, breakout_session_score),
    ),
    ideal_timeframe="15m",
)

breakout_bearish = create_detector(
    type="breakout_bearish",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_breakout_bearish,
    score_factors=(
        ScoreFactor("volume", 0.35, relative_volume_score),
        ScoreFactor("trend_alignment", 0.30, trend_alignment_score(Direction.SHORT)),
        ScoreFactor("flow", 0.20, breakout_flow_score(Direction.SHORT)),
        ScoreFactor("session_timing", 0.15, breakout_session_score),
    ),
    ideal_timeframe="15m",
)
