"""
Structure-level detection (swings, liquidity, order blocks, gaps, BOS/CHoCH).

Every function is a pure transformation of a chronological bar window. Short
or degenerate windows yield empty results rather than errors.
"""

import math
from dataclasses import dataclass
from typing import Optional

from signal_engine.config.defaults import StructureParams
from signal_engine.data.models import Bar
from signal_engine.models.levels import (
    KeyLevel,
    KeyLevelStrength,
    KeyLevelType,
    LevelStrength,
    StructureLevel,
    StructureLevelType,
)


@dataclass(frozen=True)
class ConfluenceZone:
    """Cluster of levels agreeing on roughly the same price."""
    price: float
    levels: tuple[StructureLevel, ...]
    strength: LevelStrength


def _round_half_up(value: float) -> float:
    return math.floor(value + 0.5)


def detect_swing_highs(bars: list[Bar], lookback: int = 5) -> list[StructureLevel]:
    """
    Swing highs: high strictly above every bar within lookback on both sides.

    Args:
        bars: Chronological bars
        lookback: Bars compared on each side

    Returns:
        Swing high levels in chronological order
    """
    levels = []
    for i in range(lookback, len(bars) - lookback):
        high = bars[i].high
        neighbours = bars[i - lookback:i] + bars[i + 1:i + lookback + 1]
        if any(bar.high >= high for bar in neighbours):
            continue
        levels.append(StructureLevel(
            type=StructureLevelType.SWING_HIGH,
            price=high,
            label=f"SwH {high:.2f}",
            strength=LevelStrength.MAJOR,
            bar_index=i,
            time=bars[i].time,
        ))
    return levels


def detect_swing_lows(bars: list[Bar], lookback: int = 5) -> list[StructureLevel]:
    """Swing lows: low strictly below every bar within lookback on both sides."""
    levels = []
    for i in range(lookback, len(bars) - lookback):
        low = bars[i].low
        neighbours = bars[i - lookback:i] + bars[i + 1:i + lookback + 1]
        if any(bar.low <= low for bar in neighbours):
            continue
        levels.append(StructureLevel(
            type=StructureLevelType.SWING_LOW,
            price=low,
            label=f"SwL {low:.2f}",
            strength=LevelStrength.MAJOR,
            bar_index=i,
            time=bars[i].time,
        ))
    return levels


def detect_liquidity_pools(bars: list[Bar], threshold: float = 0.001) -> list[StructureLevel]:
    """
    Liquidity pools: clusters of near-equal highs or lows.

    Prices are bucketed by rounding to a tolerance of threshold x bar midpoint;
    each bucket keeps a running average. Buckets can split a true cluster that
    straddles a rounding edge.

    Args:
        bars: Chronological bars
        threshold: Relative tolerance (0.001 = 0.1%)

    Returns:
        Liquidity levels for buckets with 3+ members (critical at 5+)
    """
    high_clusters: dict[float, list] = {}
    low_clusters: dict[float, list] = {}

    for i, bar in enumerate(bars):
        tolerance = (bar.high + bar.low) / 2 * threshold
        if tolerance <= 0:
            continue

        for price, clusters in ((bar.high, high_clusters), (bar.low, low_clusters)):
            key = _round_half_up(price / tolerance) * tolerance
            cluster = clusters.setdefault(key, [0.0, 0, []])
            cluster[1] += 1
            cluster[2].append(i)
            cluster[0] = (cluster[0] * (cluster[1] - 1) + price) / cluster[1]

    levels = []
    for clusters, level_type in ((high_clusters, StructureLevelType.LIQUIDITY_HIGH),
                                 (low_clusters, StructureLevelType.LIQUIDITY_LOW)):
        for price, count, indices in clusters.values():
            if count < 3:
                continue
            last = indices[-1]
            levels.append(StructureLevel(
                type=level_type,
                price=price,
                label=f"LIQ {price:.2f} ({count}x)",
                strength=LevelStrength.CRITICAL if count >= 5 else LevelStrength.MAJOR,
                bar_index=last,
                time=bars[last].time,
                touches=count,
            ))
    return levels


def detect_order_blocks(bars: list[Bar], min_impulse_percent: float = 0.5) -> list[StructureLevel]:
    """
    Order blocks: last opposite-coloured candle before a 3-bar impulse.

    Args:
        bars: Chronological bars
        min_impulse_percent: Minimum move from the window open to its close

    Returns:
        Bullish and bearish order block zones
    """
    levels = []
    for i in range(2, len(bars)):
        prev2, prev1, current = bars[i - 2], bars[i - 1], bars[i]
        if prev2.open <= 0:
            continue

        impulse_up = (current.close - prev2.open) / prev2.open * 100
        impulse_down = (prev2.open - current.close) / prev2.open * 100

        # Bullish OB: bearish candle before bullish impulse
        if impulse_up >= min_impulse_percent:
            ob_bar, ob_index = prev1, i - 1
            if prev1.is_bullish and prev2.is_bearish:
                ob_bar, ob_index = prev2, i - 2
            if ob_bar.is_bearish:
                levels.append(StructureLevel(
                    type=StructureLevelType.ORDER_BLOCK_BULL,
                    price=ob_bar.low,
                    price_end=ob_bar.high,
                    label=f"OB+ {ob_bar.low:.2f}-{ob_bar.high:.2f}",
                    strength=LevelStrength.CRITICAL if impulse_up >= 1 else LevelStrength.MAJOR,
                    bar_index=ob_index,
                    time=ob_bar.time,
                ))

        # Bearish OB: bullish candle before bearish impulse
        if impulse_down >= min_impulse_percent:
            ob_bar, ob_index = prev1, i - 1
            if prev1.is_bearish and prev2.is_bullish:
                ob_bar, ob_index = prev2, i - 2
            if ob_bar.is_bullish:
                levels.append(StructureLevel(
                    type=StructureLevelType.ORDER_BLOCK_BEAR,
                    price=ob_bar.high,
                    price_end=ob_bar.low,
                    label=f"OB- {ob_bar.low:.2f}-{ob_bar.high:.2f}",
                    strength=LevelStrength.CRITICAL if impulse_down >= 1 else LevelStrength.MAJOR,
                    bar_index=ob_index,
                    time=ob_bar.time,
                ))
    return levels


def detect_fair_value_gaps(bars: list[Bar], min_gap_percent: float = 0.1) -> list[StructureLevel]:
    """
    Fair value gaps between the wicks of bars i-2 and i.

    Args:
        bars: Chronological bars
        min_gap_percent: Minimum gap size as % of the lower boundary

    Returns:
        Gap zones, major at 0.5% or more, else minor
    """
    levels = []
    for i in range(2, len(bars)):
        bar1, bar3 = bars[i - 2], bars[i]

        if bar3.low > bar1.high and bar1.high > 0:
            gap = (bar3.low - bar1.high) / bar1.high * 100
            if gap >= min_gap_percent:
                levels.append(StructureLevel(
                    type=StructureLevelType.FVG_BULL,
                    price=bar1.high,
                    price_end=bar3.low,
                    label=f"FVG+ {bar1.high:.2f}-{bar3.low:.2f}",
                    strength=LevelStrength.MAJOR if gap >= 0.5 else LevelStrength.MINOR,
                    bar_index=i - 1,
                    time=bars[i - 1].time,
                ))

        if bar1.low > bar3.high and bar3.high > 0:
            gap = (bar1.low - bar3.high) / bar3.high * 100
            if gap >= min_gap_percent:
                levels.append(StructureLevel(
                    type=StructureLevelType.FVG_BEAR,
                    price=bar3.high,
                    price_end=bar1.low,
                    label=f"FVG- {bar3.high:.2f}-{bar1.low:.2f}",
                    strength=LevelStrength.MAJOR if gap >= 0.5 else LevelStrength.MINOR,
                    bar_index=i - 1,
                    time=bars[i - 1].time,
                ))
    return levels


def detect_structure_breaks(
    swing_highs: list[StructureLevel],
    swing_lows: list[StructureLevel]
) -> list[StructureLevel]:
    """
    Break of structure / change of character from swing points.

    Swings are walked chronologically with a running trend starting neutral.
    A break against the running trend is a CHoCH (critical), otherwise a
    BOS (major); either way the trend takes the break direction.
    """
    levels = []
    last_high: Optional[StructureLevel] = None
    last_low: Optional[StructureLevel] = None
    trend = "neutral"

    for swing in sorted(swing_highs + swing_lows, key=lambda level: level.bar_index):
        if swing.type == StructureLevelType.SWING_HIGH:
            if last_high is not None and swing.price > last_high.price:
                is_choch = trend == "bearish"
                levels.append(StructureLevel(
                    type=StructureLevelType.CHOCH_BULL if is_choch else StructureLevelType.BOS_BULL,
                    price=last_high.price,
                    label=f"{'CHoCH' if is_choch else 'BOS'} {last_high.price:.2f}",
                    strength=LevelStrength.CRITICAL if is_choch else LevelStrength.MAJOR,
                    bar_index=swing.bar_index,
                    time=swing.time,
                ))
                trend = "bullish"
            last_high = swing
        elif swing.type == StructureLevelType.SWING_LOW:
            if last_low is not None and swing.price < last_low.price:
                is_choch = trend == "bullish"
                levels.append(StructureLevel(
                    type=StructureLevelType.CHOCH_BEAR if is_choch else StructureLevelType.BOS_BEAR,
                    price=last_low.price,
                    label=f"{'CHoCH' if is_choch else 'BOS'} {last_low.price:.2f}",
                    strength=LevelStrength.CRITICAL if is_choch else LevelStrength.MAJOR,
                    bar_index=swing.bar_index,
                    time=swing.time,
                ))
                trend = "bearish"
            last_low = swing
    return levels


def detect_all_structure_levels(
    bars: list[Bar],
    params: Optional[StructureParams] = None
) -> list[StructureLevel]:
    """
    Run all sub-detectors, sort by price descending and cap the result.

    Returns:
        Combined levels, empty when there are fewer than 2 x lookback + 1 bars
    """
    params = params or StructureParams()
    if len(bars) < params.swing_lookback * 2 + 1:
        return []

    swing_highs = detect_swing_highs(bars, params.swing_lookback)
    swing_lows = detect_swing_lows(bars, params.swing_lookback)

    levels = (
        swing_highs
        + swing_lows
        + detect_liquidity_pools(bars, params.liquidity_threshold)
        + detect_order_blocks(bars, params.min_impulse_percent)
        + detect_fair_value_gaps(bars, params.min_gap_percent)
        + detect_structure_breaks(swing_highs, swing_lows)
    )
    levels.sort(key=lambda level: level.price, reverse=True)
    return levels[:params.max_levels]


def filter_nearby_levels(
    levels: list[StructureLevel],
    current_price: float,
    max_distance_percent: float = 3.0
) -> list[StructureLevel]:
    """Levels within max_distance_percent of the current price."""
    if current_price <= 0:
        return []
    return [
        level for level in levels
        if abs(level.price - current_price) / current_price * 100 <= max_distance_percent
    ]


def find_confluence_zones(
    levels: list[StructureLevel],
    cluster_threshold: float = 0.003
) -> list[ConfluenceZone]:
    """
    Greedy clustering of levels within a relative tolerance of an anchor.

    Each unused level anchors a cluster of the later unused levels within
    cluster_threshold of the anchor price. Clusters of two or more become
    zones priced at their mean: critical with 3+ members, else major.
    """
    zones = []
    used: set[int] = set()

    for i, anchor in enumerate(levels):
        if i in used:
            continue
        used.add(i)
        if anchor.price <= 0:
            continue

        cluster = [anchor]
        for j in range(i + 1, len(levels)):
            if j in used:
                continue
            if abs(anchor.price - levels[j].price) / anchor.price <= cluster_threshold:
                cluster.append(levels[j])
                used.add(j)

        if len(cluster) >= 2:
            zones.append(ConfluenceZone(
                price=sum(level.price for level in cluster) / len(cluster),
                levels=tuple(cluster),
                strength=LevelStrength.CRITICAL if len(cluster) >= 3 else LevelStrength.MAJOR,
            ))
    return zones


_STRENGTH_MAP = {
    LevelStrength.CRITICAL: KeyLevelStrength.STRONG,
    LevelStrength.MAJOR: KeyLevelStrength.MODERATE,
    LevelStrength.MINOR: KeyLevelStrength.WEAK,
}


def structure_to_key_levels(levels: list[StructureLevel]) -> list[KeyLevel]:
    """Normalize structure levels into key levels for risk placement."""
    return [
        KeyLevel(
            price=level.price,
            type=KeyLevelType.STRUCTURE,
            strength=_STRENGTH_MAP[level.strength],
            label=level.label,
            touch_count=level.touches,
        )
        for level in levels
    ]
