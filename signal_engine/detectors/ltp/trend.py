"""
Swing-structure trend classification for the Levels-Trend-Patience setups.

Trend is read from the sequence of swing highs and lows: higher highs and
higher lows make an uptrend, lower highs and lower lows a downtrend, and
anything mixed is chop. Chop means no trade.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from signal_engine.data.models import Bar
from signal_engine.models.features import SymbolFeatures

MTF_TIMEFRAMES = ("1m", "5m", "15m", "60m")
MIN_TREND_BARS = 10
MICRO_TREND_BARS = 10


class TrendDirection(str, Enum):
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    CHOP = "CHOP"


class LevelBreak(str, Enum):
    HIGH = "HIGH"
    LOW = "LOW"
    NONE = "NONE"


@dataclass(frozen=True)
class SwingPoint:
    kind: str           # high | low
    price: float
    bar_index: int


@dataclass(frozen=True)
class SwingStructure:
    higher_highs: int = 0
    higher_lows: int = 0
    lower_highs: int = 0
    lower_lows: int = 0

    @property
    def bullish(self) -> int:
        return self.higher_highs + self.higher_lows

    @property
    def bearish(self) -> int:
        return self.lower_highs + self.lower_lows


@dataclass(frozen=True)
class LTPTrend:
    """Trend read for the current bar."""
    direction: TrendDirection = TrendDirection.CHOP
    strength: float = 0.0
    structure: SwingStructure = field(default_factory=SwingStructure)
    orb_broken: LevelBreak = LevelBreak.NONE
    premarket_broken: LevelBreak = LevelBreak.NONE
    duration_minutes: int = 0
    is_micro_trend: bool = False
    mtf_alignment: dict[str, TrendDirection] = field(
        default_factory=lambda: {tf: TrendDirection.CHOP for tf in MTF_TIMEFRAMES}
    )


def find_swing_points(bars: list[Bar], lookback: int = 2) -> list[SwingPoint]:
    """Bars whose high (low) strictly exceeds (undercuts) `lookback` bars on each side."""
    points = []
    if len(bars) < lookback * 2 + 1:
        return points

    for i in range(lookback, len(bars) - lookback):
        current = bars[i]
        neighbours = bars[i - lookback:i] + bars[i + 1:i + lookback + 1]
        if all(bar.high < current.high for bar in neighbours):
            points.append(SwingPoint("high", current.high, i))
        if all(bar.low > current.low for bar in neighbours):
            points.append(SwingPoint("low", current.low, i))
    return points


def count_swing_structure(points: list[SwingPoint]) -> SwingStructure:
    """Count HH/LH across consecutive swing highs and HL/LL across swing lows."""
    highs = [p.price for p in points if p.kind == "high"]
    lows = [p.price for p in points if p.kind == "low"]

    higher_highs = sum(1 for prev, curr in zip(highs, highs[1:]) if curr > prev)
    lower_highs = sum(1 for prev, curr in zip(highs, highs[1:]) if curr < prev)
    higher_lows = sum(1 for prev, curr in zip(lows, lows[1:]) if curr > prev)
    lower_lows = sum(1 for prev, curr in zip(lows, lows[1:]) if curr < prev)

    return SwingStructure(higher_highs, higher_lows, lower_highs, lower_lows)


def trend_direction(structure: SwingStructure) -> TrendDirection:
    if structure.bullish >= 2 and structure.bullish > structure.bearish * 2:
        return TrendDirection.UPTREND
    if structure.bearish >= 2 and structure.bearish > structure.bullish * 2:
        return TrendDirection.DOWNTREND
    return TrendDirection.CHOP


def level_break_status(price: float, high: Optional[float], low: Optional[float]) -> LevelBreak:
    if high is None or low is None:
        return LevelBreak.NONE
    if price > high and price > low:
        return LevelBreak.HIGH
    if price < low and price < high:
        return LevelBreak.LOW
    return LevelBreak.NONE


def trend_strength(
    direction: TrendDirection,
    structure: SwingStructure,
    orb_broken: LevelBreak,
    premarket_broken: LevelBreak
) -> float:
    """Base 50 plus capped swing bonuses and level breaks, minus opposing swings."""
    if direction == TrendDirection.CHOP:
        return 0.0

    if direction == TrendDirection.UPTREND:
        strength = 50 + min(20, structure.higher_highs * 5) + min(15, structure.higher_lows * 5)
        strength += 10 if orb_broken == LevelBreak.HIGH else 0
        strength += 5 if premarket_broken == LevelBreak.HIGH else 0
        strength -= structure.bearish * 3
    else:
        strength = 50 + min(20, structure.lower_highs * 5) + min(15, structure.lower_lows * 5)
        strength += 10 if orb_broken == LevelBreak.LOW else 0
        strength += 5 if premarket_broken == LevelBreak.LOW else 0
        strength -= structure.bullish * 3

    return float(max(0, min(100, strength)))


def is_micro_trend(direction: TrendDirection, bars: list[Bar]) -> bool:
    """The short-term trend disagrees with the trend of the older bars."""
    if len(bars) < MICRO_TREND_BARS * 2:
        return False

    older = trend_direction(count_swing_structure(find_swing_points(bars[:-MICRO_TREND_BARS], 3)))
    return (
        direction != TrendDirection.CHOP
        and older != TrendDirection.CHOP
        and direction != older
    )


def mtf_alignment(features: Optional[SymbolFeatures]) -> dict[str, TrendDirection]:
    """Per-timeframe direction from RSI: above 60 up, below 40 down."""
    alignment = {tf: TrendDirection.CHOP for tf in MTF_TIMEFRAMES}
    if features is None:
        return alignment

    for tf in MTF_TIMEFRAMES:
        data = features.timeframe(tf)
        if data is None:
            continue
        if data.rsi14 > 60:
            alignment[tf] = TrendDirection.UPTREND
        elif data.rsi14 < 40:
            alignment[tf] = TrendDirection.DOWNTREND
    return alignment


def detect_ltp_trend(
    bars: list[Bar],
    orb_levels: tuple[Optional[float], Optional[float]] = (None, None),
    premarket_levels: tuple[Optional[float], Optional[float]] = (None, None),
    features: Optional[SymbolFeatures] = None
) -> LTPTrend:
    """
    Classify the trend of a bar series.

    Args:
        bars: Chronological bars, the last one is current
        orb_levels: (high, low) of the opening range
        premarket_levels: (high, low) of premarket
        features: Snapshot supplying multi-timeframe RSI

    Returns:
        LTPTrend; the CHOP default with fewer than 10 bars
    """
    if len(bars) < MIN_TREND_BARS:
        return LTPTrend()

    price = bars[-1].close
    points = find_swing_points(bars, 2)
    structure = count_swing_structure(points)
    direction = trend_direction(structure)

    orb_broken = level_break_status(price, *orb_levels)
    premarket_broken = level_break_status(price, *premarket_levels)

    # Duration measured from the first swing to the current bar
    duration = 0
    if points:
        first = bars[points[0].bar_index]
        duration = int((bars[-1].time - first.time).total_seconds() // 60)

    return LTPTrend(
        direction=direction,
        strength=trend_strength(direction, structure, orb_broken, premarket_broken),
        structure=structure,
        orb_broken=orb_broken,
        premarket_broken=premarket_broken,
        duration_minutes=duration,
        is_micro_trend=is_micro_trend(direction, bars),
        mtf_alignment=mtf_alignment(features),
    )


def trend_from_features(features: SymbolFeatures) -> LTPTrend:
    """Trend read from the bars and session levels carried by a snapshot."""
    pattern = features.pattern
    orb = (pattern.orb_high, pattern.orb_low) if pattern.orb_high > 0 else (None, None)
    return detect_ltp_trend(
        list(features.recent_bars),
        orb,
        (pattern.premarket_high, pattern.premarket_low),
        features,
    )


def is_trend_tradeable(trend: LTPTrend) -> bool:
    """Chop, weak trends and trends without both swing confirmations are not traded."""
    if trend.direction == TrendDirection.CHOP or trend.strength < 40:
        return False
    s = trend.structure
    if trend.direction == TrendDirection.UPTREND:
        return s.higher_highs >= 1 and s.higher_lows >= 1
    return s.lower_highs >= 1 and s.lower_lows >= 1


def trend_score(trend: LTPTrend) -> float:
    if trend.direction == TrendDirection.CHOP:
        return 0.0

    score = trend.strength
    if (trend.direction == TrendDirection.UPTREND and trend.orb_broken == LevelBreak.HIGH) or (
        trend.direction == TrendDirection.DOWNTREND and trend.orb_broken == LevelBreak.LOW
    ):
        score += 10

    score += 5 * sum(1 for d in trend.mtf_alignment.values() if d == trend.direction)

    if trend.is_micro_trend:
        score -= 15

    return float(max(0, min(100, score)))
