"""
Levels-Trend-Patience setups.

VWAP standard and King-and-Queen trade a pullback to VWAP in the direction
of the swing trend, ideally from a patience candle; King-and-Queen also
requires another level stacked on VWAP. EMA bounce trades the same pullback
to the 8 EMA inside an established trend. ORB breakout trades a close
through an opening range of sensible width on participating volume.
"""

from typing import Optional

from signal_engine.data.models import OptionsChainData
from signal_engine.models.enums import Direction
from signal_engine.models.features import SymbolFeatures

from ..base import ALL_ASSET_CLASSES, ScoreFactor, create_detector, should_run_detector
from .confluence import build_ltp_levels, detect_king_queen
from .patience import detect_patience_candle, patience_score
from .trend import TrendDirection, is_trend_tradeable, trend_from_features, trend_score

KING_QUEEN_TEST_PCT = 0.5
EMA_BOUNCE_PCT = 0.5
ORB_MINUTES = 15


def _atr(features: SymbolFeatures) -> float:
    return features.atr if features.atr > 0 else features.price.current * 0.015


def _near(price: float, level: Optional[float], pct: float) -> bool:
    """Level within `pct` percent of price."""
    if not level or level <= 0 or price <= 0:
        return False
    return abs(price - level) / price * 100 <= pct


def in_vwap_zone(features: SymbolFeatures, threshold_pct: float) -> bool:
    return _near(features.price.current, features.vwap.value, threshold_pct)


def is_approaching_vwap(features: SymbolFeatures, direction: Direction) -> bool:
    """Bar wicked through VWAP and closed back on the trade side of it."""
    vwap = features.vwap.value
    if vwap <= 0:
        return False
    price = features.price
    if direction == Direction.LONG:
        return price.low < vwap and price.current >= vwap * 0.997
    return price.high > vwap and price.current <= vwap * 1.003


def has_king_queen(features: SymbolFeatures, proximity_pct: float = 0.3) -> bool:
    """Price at VWAP with at least one queen (EMA 8/21, ORB) also at price."""
    price = features.price.current
    if not in_vwap_zone(features, proximity_pct):
        return False
    queens = (
        features.ema.ema8,
        features.ema.ema21,
        features.pattern.orb_high,
        features.pattern.orb_low,
    )
    return any(_near(price, level, proximity_pct) for level in queens)


def _patience_factor(features: SymbolFeatures, default: float) -> float:
    candle = detect_patience_candle(list(features.recent_bars), _atr(features))
    if candle.detected:
        return patience_score(candle)
    if features.pattern.patience_candle:
        return 50.0
    return default


# VWAP standard factors

def vwap_level_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    price = features.price.current
    score = 0.0
    if in_vwap_zone(features, 0.2):
        score += 60
    elif in_vwap_zone(features, 0.5):
        score += 45
    elif in_vwap_zone(features, 0.7):
        score += 30

    if _near(price, features.ema.ema8, 0.5):
        score += 20
    if _near(price, features.ema.ema21, 0.5):
        score += 15
    if _near(price, features.pattern.orb_high, 0.3):
        score += 15
    if _near(price, features.pattern.orb_low, 0.3):
        score += 15
    return min(100.0, score)


def vwap_trend_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    trend = trend_from_features(features)
    if not is_trend_tradeable(trend):
        return 0.0
    return trend_score(trend)


def vwap_patience_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _patience_factor(features, default=0.0)


def vwap_volume_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    rvol = features.volume.relative_to_avg
    if 0.8 <= rvol <= 2.0:
        return 85.0
    if rvol > 2.0:
        return 70.0
    return 50.0


def vwap_session_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    minutes = features.session.minutes_since_open
    if minutes < 30:
        return 20.0
    if minutes <= 180:
        return 100.0
    if minutes <= 300:
        return 80.0
    return 40.0


VWAP_STANDARD_FACTORS = (
    ScoreFactor("level_confluence", 0.30, vwap_level_score),
    ScoreFactor("trend_strength", 0.25, vwap_trend_score),
    ScoreFactor("patience_candle", 0.25, vwap_patience_score),
    ScoreFactor("volume_confirmation", 0.10, vwap_volume_score),
    ScoreFactor("session_timing", 0.10, vwap_session_score),
)


def detect_vwap_standard_long(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    price = features.price.current
    vwap = features.vwap.value
    if price <= 0 or vwap <= 0 or not should_run_detector(features):
        return False
    if features.session.minutes_since_open < 30:
        return False

    trend = trend_from_features(features)
    if trend.direction == TrendDirection.DOWNTREND and not trend.is_micro_trend:
        return False

    if not in_vwap_zone(features, 0.7):
        return False

    return (
        is_approaching_vwap(features, Direction.LONG)
        or features.pattern.patience_candle
        or price >= vwap * 0.998
    )


def detect_vwap_standard_short(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    price = features.price.current
    vwap = features.vwap.value
    if price <= 0 or vwap <= 0 or not should_run_detector(features):
        return False
    if features.session.minutes_since_open < 30:
        return False

    trend = trend_from_features(features)
    if trend.direction != TrendDirection.DOWNTREND or not is_trend_tradeable(trend):
        return False

    if not in_vwap_zone(features, 0.5):
        return False

    return is_approaching_vwap(features, Direction.SHORT) or features.pattern.patience_candle


# King-and-Queen factors

def king_queen_level_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    price = features.price.current
    king_queen = detect_king_queen(build_ltp_levels(features), price)
    if not king_queen.detected:
        return 0.0
    score = 50 + min(40, len(king_queen.queens) * 15) + king_queen.strength * 0.1
    return min(100.0, score)


def king_queen_trend_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    trend = trend_from_features(features)
    if trend.direction == TrendDirection.CHOP:
        return 20.0
    return trend_score(trend)


def king_queen_patience_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _patience_factor(features, default=20.0)


def king_queen_volume_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    rvol = features.volume.relative_to_avg
    if 1.0 <= rvol <= 2.5:
        return 90.0
    if rvol > 2.5:
        return 75.0
    return 60.0


def king_queen_session_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    minutes = features.session.minutes_since_open
    if minutes < 10:
        return 30.0
    if minutes <= 90:
        return 90.0
    if minutes <= 270:
        return 100.0
    if minutes <= 330:
        return 70.0
    return 30.0


KING_QUEEN_FACTORS = (
    ScoreFactor("level_confluence", 0.35, king_queen_level_score),
    ScoreFactor("trend_strength", 0.25, king_queen_trend_score),
    ScoreFactor("patience_candle", 0.20, king_queen_patience_score),
    ScoreFactor("volume_confirmation", 0.10, king_queen_volume_score),
    ScoreFactor("session_timing", 0.10, king_queen_session_score),
)


def _king_queen_gate(features: SymbolFeatures) -> bool:
    if features.price.current <= 0 or features.vwap.value <= 0:
        return False
    if not should_run_detector(features):
        return False
    if features.session.minutes_since_open < 10:
        return False
    return has_king_queen(features, KING_QUEEN_TEST_PCT)


def detect_king_queen_long(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    if not _king_queen_gate(features):
        return False

    trend = trend_from_features(features)
    if trend.direction == TrendDirection.DOWNTREND and not trend.is_micro_trend:
        return False

    # Extended above VWAP only with a confirmed uptrend
    if features.price.current > features.vwap.value * 1.005:
        return trend.direction == TrendDirection.UPTREND
    return True


def detect_king_queen_short(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    if not _king_queen_gate(features):
        return False

    trend = trend_from_features(features)
    if trend.direction == TrendDirection.UPTREND and not trend.is_micro_trend:
        return False

    if features.price.current < features.vwap.value * 0.995:
        return trend.direction == TrendDirection.DOWNTREND
    return True


# EMA bounce factors

def _ema_pullback(features: SymbolFeatures, direction: Direction) -> bool:
    """Bar reached past EMA 8 and closed back at it."""
    price = features.price
    ema8 = features.ema.ema8
    if direction == Direction.LONG:
        return price.high > ema8 and price.current <= ema8 * 1.003
    return price.low < ema8 and price.current >= ema8 * 0.997


def ema_bounce_level_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    price = features.price.current
    ema = features.ema
    score = 0.0
    if _near(price, ema.ema8, 0.5):
        score += 40
    # EMA 8 and 21 converged is the strong trend zone
    if price > 0 and ema.ema8 > 0 and ema.ema21 > 0 and abs(ema.ema8 - ema.ema21) / price * 100 < 0.5:
        score += 20
    if in_vwap_zone(features, 0.5):
        score += 30
    if _near(price, features.pattern.orb_high, 0.3) or _near(price, features.pattern.orb_low, 0.3):
        score += 15
    return min(100.0, score)


def ema_bounce_patience_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _patience_factor(features, default=0.0)


def ema_bounce_volume_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    rvol = features.volume.relative_to_avg
    if 0.8 <= rvol <= 1.5:
        return 80.0
    if 1.5 < rvol < 2.5:
        return 90.0
    if rvol >= 2.5:
        return 70.0
    return 50.0


def ema_bounce_session_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    minutes = features.session.minutes_since_open
    if minutes < 30:
        return 50.0
    if minutes <= 90:
        return 100.0
    if minutes <= 210:
        return 80.0
    if minutes <= 330:
        return 70.0
    return 30.0


def ema_stack_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    """Credit for EMAs stacked behind price and RSI with room to run."""
    price = features.price.current
    ema = features.ema
    if ema.ema8 <= 0 or ema.ema21 <= 0:
        return 50.0

    score = 50.0
    if price > ema.ema8 > ema.ema21:
        score += 25
        if ema.ema50 > 0 and ema.ema21 > ema.ema50:
            score += 15
    if price < ema.ema8 < ema.ema21:
        score += 25
        if ema.ema50 > 0 and ema.ema21 < ema.ema50:
            score += 15
    if 40 < features.rsi < 70:
        score += 10
    return min(100.0, score)


EMA_BOUNCE_FACTORS = (
    ScoreFactor("level_confluence", 0.25, ema_bounce_level_score),
    ScoreFactor("trend_strength", 0.25, vwap_trend_score),
    ScoreFactor("patience_candle", 0.25, ema_bounce_patience_score),
    ScoreFactor("volume_confirmation", 0.10, ema_bounce_volume_score),
    ScoreFactor("session_timing", 0.05, ema_bounce_session_score),
    ScoreFactor("mtf_alignment", 0.10, ema_stack_score),
)


def _ema_bounce(features: SymbolFeatures, direction: Direction) -> bool:
    price = features.price.current
    if price <= 0 or features.ema.ema8 <= 0 or not should_run_detector(features):
        return False

    trend = trend_from_features(features)
    wanted = TrendDirection.UPTREND if direction == Direction.LONG else TrendDirection.DOWNTREND
    if trend.direction != wanted or not is_trend_tradeable(trend):
        return False

    if not _near(price, features.ema.ema8, EMA_BOUNCE_PCT):
        return False
    return _ema_pullback(features, direction) or features.pattern.patience_candle


def detect_ema_bounce_long(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return _ema_bounce(features, Direction.LONG)


def detect_ema_bounce_short(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return _ema_bounce(features, Direction.SHORT)


# Opening range breakout factors

def _orb_break(price: float, features: SymbolFeatures, direction: Direction, buffer: float) -> bool:
    pattern = features.pattern
    if direction == Direction.LONG:
        return pattern.orb_high > 0 and price > pattern.orb_high * (1 + buffer)
    return pattern.orb_low > 0 and price < pattern.orb_low * (1 - buffer)


def is_valid_orb_range(features: SymbolFeatures) -> bool:
    """Opening range between half and two and a half ATRs wide."""
    pattern = features.pattern
    atr = _atr(features)
    if pattern.orb_high <= 0 or pattern.orb_low <= 0 or atr <= 0:
        return False
    return 0.5 <= (pattern.orb_high - pattern.orb_low) / atr <= 2.5


def orb_level_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    price = features.price.current
    score = 0.0
    if _near(price, features.pattern.orb_high, 0.5):
        score += 40
    if _near(price, features.pattern.orb_low, 0.5):
        score += 40
    if in_vwap_zone(features, 0.5):
        score += 25
    if _near(price, features.ema.ema8, 0.5):
        score += 20
    return min(100.0, score)


def orb_trend_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    """Distance through the range plus a close near the bar extreme."""
    price = features.price
    score = 50.0
    if _orb_break(price.current, features, Direction.LONG, 0.002):
        score += 30
    if _orb_break(price.current, features, Direction.SHORT, 0.002):
        score += 30

    bar_range = price.high - price.low
    if bar_range > 0:
        close_position = (price.current - price.low) / bar_range
        if close_position > 0.7 or close_position < 0.3:
            score += 20
    return min(100.0, score)


def orb_patience_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _patience_factor(features, default=30.0)


def orb_volume_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    rvol = features.volume.relative_to_avg
    if rvol >= 2.0:
        return 100.0
    if rvol >= 1.5:
        return 85.0
    if rvol >= 1.2:
        return 70.0
    if rvol >= 1.0:
        return 55.0
    return 30.0


def orb_session_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    minutes = features.session.minutes_since_open
    if minutes < ORB_MINUTES:
        return 0.0
    if minutes <= 30:
        return 100.0
    if minutes <= 60:
        return 90.0
    if minutes <= 90:
        return 70.0
    return 40.0


ORB_BREAKOUT_FACTORS = (
    ScoreFactor("level_confluence", 0.25, orb_level_score),
    ScoreFactor("trend_strength", 0.25, orb_trend_score),
    ScoreFactor("patience_candle", 0.20, orb_patience_score),
    ScoreFactor("volume_confirmation", 0.20, orb_volume_score),
    ScoreFactor("session_timing", 0.10, orb_session_score),
)


def _orb_breakout(features: SymbolFeatures, direction: Direction) -> bool:
    price = features.price.current
    pattern = features.pattern
    if price <= 0 or not should_run_detector(features):
        return False
    if pattern.orb_high <= 0 or pattern.orb_low <= 0:
        return False
    if features.session.minutes_since_open < ORB_MINUTES:
        return False
    if not _orb_break(price, features, direction, 0.001):
        return False
    if not is_valid_orb_range(features):
        return False
    # Low-volume breaks fail too often
    return features.volume.relative_to_avg >= 0.8


def detect_orb_breakout_long(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return _orb_breakout(features, Direction.LONG)


def detect_orb_breakout_short(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> bool:
    return _orb_breakout(features, Direction.SHORT)


vwap_standard_long = create_detector(
    type="ltp_vwap_standard_long",
    direction=Direction.LONG,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_vwap_standard_long,
    score_factors=VWAP_STANDARD_FACTORS,
)

vwap_standard_short = create_detector(
    type="ltp_vwap_standard_short",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_vwap_standard_short,
    score_factors=VWAP_STANDARD_FACTORS,
)

king_queen_long = create_detector(
    type="ltp_king_queen_long",
    direction=Direction.LONG,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_king_queen_long,
    score_factors=KING_QUEEN_FACTORS,
    ideal_timeframe="15m",
)

king_queen_short = create_detector(
    type="ltp_king_queen_short",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_king_queen_short,
    score_factors=KING_QUEEN_FACTORS,
    ideal_timeframe="15m",
)

ema_bounce_long = create_detector(
    type="ltp_ema_bounce_long",
    direction=Direction.LONG,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_ema_bounce_long,
    score_factors=EMA_BOUNCE_FACTORS,
)

ema_bounce_short = create_detector(
    type="ltp_ema_bounce_short",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_ema_bounce_short,
    score_factors=EMA_BOUNCE_FACTORS,
)

orb_breakout_long = create_detector(
    type="ltp_orb_breakout_long",
    direction=Direction.LONG,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_orb_breakout_long,
    score_factors=ORB_BREAKOUT_FACTORS,
)

orb_breakout_short = create_detector(
    type="ltp_orb_breakout_short",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_orb_breakout_short,
    score_factors=ORB_BREAKOUT_FACTORS,
)

LTP_DETECTORS = (
    vwap_standard_long,
    vwap_standard_short,
    king_queen_long,
    king_queen_short,
    ema_bounce_long,
    ema_bounce_short,
    orb_breakout_long,
    orb_breakout_short,
)
