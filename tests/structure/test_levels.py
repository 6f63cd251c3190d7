"""Tests for structure-level detection"""

import pytest

from signal_engine.config.defaults import StructureParams
from signal_engine.models.levels import (
    KeyLevelStrength,
    KeyLevelType,
    LevelStrength,
    StructureLevel,
    StructureLevelType,
)
from signal_engine.structure import (
    detect_all_structure_levels,
    detect_fair_value_gaps,
    detect_liquidity_pools,
    detect_order_blocks,
    detect_structure_breaks,
    detect_swing_highs,
    detect_swing_lows,
    filter_nearby_levels,
    find_confluence_zones,
    structure_to_key_levels,
)


def level(price, level_type=StructureLevelType.SWING_HIGH, bar_index=0, strength=LevelStrength.MAJOR):
    return StructureLevel(type=level_type, price=price, label=f"L {price}", strength=strength, bar_index=bar_index)


def zigzag(bar_factory):
    """Doji bars along a zig-zag: swing highs at 103 and 105, swing low at 99."""
    mids = [100, 101, 102, 103, 102, 101, 100, 99, 100, 101, 102, 103, 104, 105, 104, 103, 102]
    return [bar_factory(i, mid, mid + 0.3, mid - 0.3, mid) for i, mid in enumerate(mids)]


class TestSwingPoints:
    """Test swing high/low detection"""

    def test_single_swing_high(self, bar_factory):
        """Peak strictly above its neighbours is a swing high"""
        highs = [101, 102, 105, 102, 101]
        bars = [bar_factory(i, 100, h, 99, 100) for i, h in enumerate(highs)]
        swings = detect_swing_highs(bars, lookback=2)

        assert len(swings) == 1
        assert swings[0].price == 105
        assert swings[0].bar_index == 2
        assert swings[0].strength == LevelStrength.MAJOR

    def test_single_swing_low(self, bar_factory):
        """Trough strictly below its neighbours is a swing low"""
        lows = [99, 98, 95, 98, 99]
        bars = [bar_factory(i, 100, 101, low, 100) for i, low in enumerate(lows)]
        swings = detect_swing_lows(bars, lookback=2)

        assert [s.price for s in swings] == [95]

    def test_equal_neighbour_is_not_swing(self, bar_factory):
        """Ties with a neighbour disqualify the swing"""
        highs = [101, 105, 105, 102, 101]
        bars = [bar_factory(i, 100, h, 99, 100) for i, h in enumerate(highs)]
        assert detect_swing_highs(bars, lookback=1) == []

    @pytest.mark.parametrize("lookback", [1, 2, 5])
    def test_short_window_has_no_swings(self, bar_factory, lookback):
        """Fewer than 2 x lookback + 1 bars yields no swing points"""
        bars = [bar_factory(i, 100, 100 + (i % 2) * 3, 99, 100) for i in range(2 * lookback)]
        assert detect_swing_highs(bars, lookback) == []
        assert detect_swing_lows(bars, lookback) == []


class TestLiquidityPools:
    """Test equal highs/lows clustering"""

    def test_repeated_highs_and_lows(self, bar_factory):
        """Five identical bars form critical pools at both extremes"""
        bars = [bar_factory(i, 99.5, 100.0, 99.0, 99.6) for i in range(5)]
        levels = detect_liquidity_pools(bars, threshold=0.001)

        by_type = {lvl.type: lvl for lvl in levels}
        assert set(by_type) == {StructureLevelType.LIQUIDITY_HIGH, StructureLevelType.LIQUIDITY_LOW}
        assert by_type[StructureLevelType.LIQUIDITY_HIGH].price == pytest.approx(100.0)
        assert by_type[StructureLevelType.LIQUIDITY_HIGH].touches == 5
        assert by_type[StructureLevelType.LIQUIDITY_HIGH].strength == LevelStrength.CRITICAL
        assert by_type[StructureLevelType.LIQUIDITY_LOW].price == pytest.approx(99.0)

    def test_two_touches_is_not_a_pool(self, bar_factory):
        """Pools need at least three touches"""
        bars = [bar_factory(i, 99.5, 100.0, 99.0, 99.6) for i in range(2)]
        assert detect_liquidity_pools(bars) == []


class TestOrderBlocks:
    """Test order block detection"""

    def test_bullish_order_block_on_preceding_bearish_candle(self, bar_factory):
        """Bearish candle before a 1.5% impulse is a critical bullish order block"""
        bars = [
            bar_factory(0, 100.0, 100.2, 97.8, 98.0),
            bar_factory(1, 98.0, 99.2, 97.8, 99.0),
            bar_factory(2, 99.0, 101.7, 98.8, 101.5),
        ]
        blocks = detect_order_blocks(bars, min_impulse_percent=0.5)

        assert len(blocks) == 1
        block = blocks[0]
        assert block.type == StructureLevelType.ORDER_BLOCK_BULL
        assert block.bar_index == 0
        assert block.strength == LevelStrength.CRITICAL
        assert block.price == 97.8
        assert block.price_end == 100.2

    def test_bearish_order_block(self, bar_factory):
        """Bullish candle before a downward impulse is a bearish order block"""
        bars = [
            bar_factory(0, 100.0, 100.8, 99.8, 100.6),
            bar_factory(1, 100.6, 100.7, 99.5, 99.6),
            bar_factory(2, 99.6, 99.7, 99.2, 99.3),
        ]
        blocks = detect_order_blocks(bars, min_impulse_percent=0.5)

        assert len(blocks) == 1
        assert blocks[0].type == StructureLevelType.ORDER_BLOCK_BEAR
        assert blocks[0].bar_index == 0
        assert blocks[0].strength == LevelStrength.MAJOR

    def test_small_move_is_not_impulse(self, bar_factory):
        """Moves under the impulse threshold produce nothing"""
        bars = [
            bar_factory(0, 100.0, 100.2, 99.8, 99.9),
            bar_factory(1, 99.9, 100.1, 99.8, 100.0),
            bar_factory(2, 100.0, 100.3, 99.9, 100.2),
        ]
        assert detect_order_blocks(bars, min_impulse_percent=0.5) == []


class TestFairValueGaps:
    """Test fair value gap detection"""

    def test_bullish_gap(self, bar_factory):
        """Gap between bar 1 high and bar 3 low"""
        bars = [
            bar_factory(0, 99.5, 100.0, 99.0, 99.9),
            bar_factory(1, 99.9, 100.9, 99.8, 100.8),
            bar_factory(2, 100.8, 101.2, 100.6, 101.0),
        ]
        gaps = detect_fair_value_gaps(bars, min_gap_percent=0.1)

        assert len(gaps) == 1
        assert gaps[0].type == StructureLevelType.FVG_BULL
        assert gaps[0].price == 100.0
        assert gaps[0].price_end == 100.6
        assert gaps[0].strength == LevelStrength.MAJOR
        assert gaps[0].bar_index == 1

    def test_overlapping_wicks_no_gap(self, bar_factory):
        """Overlapping wicks leave no gap"""
        bars = [
            bar_factory(0, 99.5, 100.0, 99.0, 99.9),
            bar_factory(1, 99.9, 100.5, 99.8, 100.4),
            bar_factory(2, 100.4, 100.6, 99.95, 100.5),
        ]
        assert detect_fair_value_gaps(bars) == []


class TestStructureBreaks:
    """Test BOS and CHoCH"""

    def test_bos_then_choch(self):
        """Higher high from neutral is a BOS; a lower low afterwards is a CHoCH"""
        highs = [level(101.0, bar_index=5), level(103.0, bar_index=15)]
        lows = [
            level(99.0, StructureLevelType.SWING_LOW, bar_index=10),
            level(98.0, StructureLevelType.SWING_LOW, bar_index=20),
        ]
        breaks = detect_structure_breaks(highs, lows)

        assert [b.type for b in breaks] == [StructureLevelType.BOS_BULL, StructureLevelType.CHOCH_BEAR]
        assert breaks[0].price == 101.0
        assert breaks[0].bar_index == 15
        assert breaks[1].price == 99.0
        assert breaks[1].strength == LevelStrength.CRITICAL


class TestAggregation:
    """Test the combined detector and helpers"""

    def test_short_history_is_empty(self, bar_factory):
        """Below 2 x lookback + 1 bars nothing is detected"""
        bars = [bar_factory(i, 100, 101, 99, 100) for i in range(10)]
        assert detect_all_structure_levels(bars, StructureParams(swing_lookback=5)) == []

    def test_sorted_by_price_descending_and_capped(self, bar_factory):
        """Combined levels are sorted high to low and capped"""
        bars = zigzag(bar_factory)
        assert len(detect_all_structure_levels(bars, StructureParams(swing_lookback=2))) > 3

        levels = detect_all_structure_levels(bars, StructureParams(swing_lookback=2, max_levels=3))

        assert len(levels) == 3
        prices = [lvl.price for lvl in levels]
        assert prices == sorted(prices, reverse=True)

    def test_deterministic(self, bar_factory):
        """Same bars give the same levels"""
        params = StructureParams(swing_lookback=2)
        assert detect_all_structure_levels(zigzag(bar_factory), params) == detect_all_structure_levels(
            zigzag(bar_factory), params
        )

    def test_filter_nearby(self):
        """Only levels within the distance are kept"""
        levels = [level(101.0), level(104.0), level(97.5)]
        nearby = filter_nearby_levels(levels, 100.0, 3.0)
        assert [lvl.price for lvl in nearby] == [101.0, 97.5]
        assert filter_nearby_levels(levels, 0.0) == []

    def test_confluence_zone(self):
        """580.0 and 580.2 merge into one major zone; 610.0 stays alone"""
        levels = [level(580.0), level(580.2), level(610.0)]
        zones = find_confluence_zones(levels, cluster_threshold=0.003)

        assert len(zones) == 1
        assert zones[0].strength == LevelStrength.MAJOR
        assert zones[0].price == pytest.approx(580.1)
        assert len(zones[0].levels) == 2

    def test_three_level_zone_is_critical(self):
        """Three agreeing levels make a critical zone"""
        zones = find_confluence_zones([level(100.0), level(100.1), level(100.2)], 0.003)
        assert len(zones) == 1
        assert zones[0].strength == LevelStrength.CRITICAL

    def test_structure_to_key_levels(self):
        """Strength tiers map onto key level strengths"""
        key_levels = structure_to_key_levels([
            level(100.0, strength=LevelStrength.CRITICAL),
            level(99.0, strength=LevelStrength.MINOR),
        ])
        assert [k.strength for k in key_levels] == [KeyLevelStrength.STRONG, KeyLevelStrength.WEAK]
        assert all(k.type == KeyLevelType.STRUCTURE for k in key_levels)
