"""Tests for level-aware stops, targets and key level normalization"""

import pytest

from signal_engine.models.enums import Direction, TradeClass
from signal_engine.models.features import PatternFeatures
from signal_engine.models.levels import KeyLevel, KeyLevelStrength, KeyLevelType, ReferenceLevels
from signal_engine.risk import (
    calculate_level_aware_stop,
    calculate_level_aware_targets,
    extract_key_levels,
    reference_levels_from_features,
    validate_stop_placement,
)


def key_level(price, strength=KeyLevelStrength.MODERATE, level_type=KeyLevelType.VWAP, label=None):
    return KeyLevel(price=price, type=level_type, strength=strength, label=label or f"L {price}")


@pytest.fixture
def levels():
    return [
        key_level(98.0, KeyLevelStrength.STRONG, KeyLevelType.PRIOR_DAY_HL, "PDL"),
        key_level(99.5, label="VWAP"),
        key_level(102.0, level_type=KeyLevelType.ORB, label="ORB H"),
    ]


class TestLevelAwareStop:
    """Test stop placement"""

    def test_long_stop_below_best_support(self, levels):
        """Closest qualifying support outranks a stronger but farther one"""
        result = calculate_level_aware_stop(100.0, Direction.LONG, levels, atr=1.0)

        assert result.recommended_stop == pytest.approx(99.4)
        assert result.recommended_stop < 100.0
        assert result.level_label == "VWAP"
        assert result.confidence == "medium"
        assert [alt.level_price for alt in result.alternatives] == [98.0]
        assert result.alternatives[0].price == pytest.approx(97.9)

    def test_short_stop_above_resistance(self, levels):
        """Shorts hide the stop above resistance"""
        result = calculate_level_aware_stop(100.0, "short", levels, atr=1.0)

        assert result.recommended_stop == pytest.approx(102.1)
        assert result.recommended_stop > 100.0
        assert result.level_type == KeyLevelType.ORB

    def test_strong_level_is_high_confidence(self):
        """Strong level within 3% gives high confidence"""
        result = calculate_level_aware_stop(
            100.0, Direction.LONG, ReferenceLevels(prior_day_low=98.0), atr=1.0
        )
        assert result.recommended_stop == pytest.approx(97.9)
        assert result.level_label == "Prior Day Low"
        assert result.confidence == "high"

    @pytest.mark.parametrize("trade_class,expected", [
        (TradeClass.SCALP, 99.25),
        (TradeClass.DAY, 99.0),
        (TradeClass.SWING, 98.5),
        ("leap", 98.0),
    ])
    def test_atr_fallback_by_trade_class(self, trade_class, expected):
        """No levels falls back to the trade class ATR multiple"""
        result = calculate_level_aware_stop(100.0, Direction.LONG, [], atr=1.0, trade_class=trade_class)

        assert result.recommended_stop == pytest.approx(expected)
        assert result.level_type == KeyLevelType.ATR
        assert result.confidence == "low"
        assert result.warnings

    def test_fallback_without_atr(self):
        """Zero ATR still puts the stop on the loss side"""
        long = calculate_level_aware_stop(100.0, Direction.LONG, [], atr=0.0)
        short = calculate_level_aware_stop(100.0, Direction.SHORT, [], atr=0.0)
        assert long.recommended_stop == pytest.approx(99.5)
        assert short.recommended_stop == pytest.approx(100.5)

    def test_levels_beyond_max_distance_ignored(self):
        """Levels further than the max stop percent fall back to ATR"""
        result = calculate_level_aware_stop(100.0, Direction.LONG, [key_level(90.0)], atr=1.0)
        assert result.level_type == KeyLevelType.ATR

    def test_overrides_applied_last(self, levels):
        """Caller overrides beat the trade class row"""
        result = calculate_level_aware_stop(
            100.0, Direction.LONG, [levels[0]], atr=1.0, overrides={"max_stop_percent": 1.0}
        )
        assert result.level_type == KeyLevelType.ATR

    def test_high_iv_widens_buffer(self):
        """High IV percentile widens the buffer by 20%"""
        result = calculate_level_aware_stop(
            100.0, Direction.LONG, [key_level(98.0, KeyLevelStrength.STRONG)], atr=1.0, iv_percentile=90
        )
        assert result.recommended_stop == pytest.approx(97.88)
        assert "High IV" in result.reasoning

    def test_tight_stop_warning(self):
        """A stop inside the minimum distance is flagged"""
        result = calculate_level_aware_stop(100.0, Direction.LONG, [key_level(99.9)], atr=0.1)
        assert any("Stop too tight" in warning for warning in result.warnings)


class TestLevelAwareTargets:
    """Test target placement"""

    def test_targets_snap_to_levels(self):
        """T1 and T2 land on levels near 1R and 2R"""
        levels = [key_level(101.2, label="R1"), key_level(102.1, label="R2"), key_level(97.0)]
        targets = calculate_level_aware_targets(100.0, Direction.LONG, levels, stop_distance=1.0)

        assert targets.t1.price == 101.2
        assert targets.t1.label == "R1"
        assert targets.t2.price == 102.1
        assert targets.t2.r_multiple == pytest.approx(2.1)

    def test_r_multiple_fallback(self):
        """No levels gives plain 1R, 2R and 3R targets"""
        long = calculate_level_aware_targets(100.0, Direction.LONG, [], stop_distance=1.0)
        short = calculate_level_aware_targets(100.0, Direction.SHORT, [], stop_distance=1.0)

        assert long.prices == (101.0, 102.0, 103.0)
        assert short.prices == (99.0, 98.0, 97.0)
        assert long.reasoning[0] == "T1 at 1R (no levels found)"

    def test_first_level_when_none_near_1r(self):
        """T1 takes the first profit-side level when none sits near 1R"""
        targets = calculate_level_aware_targets(100.0, Direction.LONG, [key_level(104.0)], stop_distance=1.0)
        assert targets.t1.price == 104.0
        assert targets.t2.price == 102.0


class TestRiskDeterminism:
    """Repeated placement on identical inputs gives identical results"""

    def test_stop_is_deterministic(self, levels):
        first = calculate_level_aware_stop(
            100.0, Direction.LONG, levels, atr=1.2, trade_class=TradeClass.SWING, iv_percentile=90
        )
        second = calculate_level_aware_stop(
            100.0, Direction.LONG, list(levels), atr=1.2, trade_class=TradeClass.SWING, iv_percentile=90
        )

        assert first == second
        assert first.alternatives == second.alternatives

    def test_targets_are_deterministic(self, levels):
        stop = calculate_level_aware_stop(100.0, Direction.SHORT, levels, atr=1.0, iv_percentile=10)
        distance = abs(stop.recommended_stop - 100.0)

        first = calculate_level_aware_targets(100.0, Direction.SHORT, levels, stop_distance=distance)
        second = calculate_level_aware_targets(100.0, Direction.SHORT, levels, stop_distance=distance)

        assert first == second
        assert first.prices == second.prices

    def test_fallback_is_deterministic(self):
        """The ATR fallback path is just as stable"""
        results = [calculate_level_aware_stop(250.0, Direction.SHORT, [], atr=2.5, iv_percentile=50) for _ in range(3)]
        assert results[0] == results[1] == results[2]
        assert results[0].level_type == KeyLevelType.ATR


class TestValidateStop:
    """Test stop validation"""

    def test_wrong_side(self):
        """Long stops above entry are invalid"""
        validation = validate_stop_placement(101.0, 100.0, Direction.LONG, [], atr=1.0)
        assert not validation.is_valid
        assert "Stop must be below entry for long trades" in validation.issues

    def test_beyond_level_is_valid(self):
        """A stop just below support passes"""
        validation = validate_stop_placement(98.4, 100.0, Direction.LONG, [key_level(98.5)], atr=1.0)
        assert validation.is_valid
        assert validation.suggestions == ()

    def test_too_tight_and_too_wide(self):
        """Distance limits"""
        tight = validate_stop_placement(99.9, 100.0, Direction.LONG, [], atr=1.0)
        wide = validate_stop_placement(85.0, 100.0, Direction.LONG, [], atr=1.0)
        assert "Stop too tight (0.10%)" in tight.issues
        assert "Stop too wide (15.00%)" in wide.issues

    def test_stop_in_front_of_support(self):
        """A long stop above a support below entry is flagged"""
        validation = validate_stop_placement(99.0, 100.0, Direction.LONG, [key_level(98.5)], atr=1.0)
        assert not validation.is_valid
        assert "Place stop BEYOND the key level, not above it" in validation.suggestions


class TestKeyLevels:
    """Test reference level normalization"""

    def test_extract_skips_missing(self):
        """Only positive levels are extracted, with their strength tier"""
        levels = extract_key_levels(ReferenceLevels(prior_day_high=105.0, vwap=100.0, bollinger_lower=0.0))

        assert [(level.label, level.strength) for level in levels] == [
            ("Prior Day High", KeyLevelStrength.STRONG),
            ("VWAP", KeyLevelStrength.MODERATE),
        ]

    def test_reference_levels_from_features(self, features_factory):
        """Supplied levels win; gaps are filled from the snapshot"""
        features = features_factory(pattern=PatternFeatures(orb_high=101.0, orb_low=99.0, prior_day_low=97.0))
        reference = reference_levels_from_features(features, ReferenceLevels(orb_high=101.5))

        assert reference.orb_high == 101.5
        assert reference.orb_low == 99.0
        assert reference.prior_day_low == 97.0
        assert reference.prior_day_high is None
        assert reference.vwap == 99.8
