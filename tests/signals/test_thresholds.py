"""Tests for static and adaptive emission thresholds"""

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from signal_engine.config.defaults import get_default_config
from signal_engine.models.enums import Regime, VIXLevel
from signal_engine.models.features import PatternFeatures
from signal_engine.signals.styles import TimeOfDayWindow
from signal_engine.signals.thresholds import (
    REASON_BASE_SCORE,
    REASON_RISK_REWARD,
    REASON_STRATEGY_DISABLED,
    REASON_STYLE_SCORE,
    MarketRegime,
    StrategyCategory,
    Thresholds,
    categorize_strategy,
    get_adaptive_thresholds,
    market_regime,
    passes_thresholds,
    resolve_thresholds,
    static_thresholds,
)

SATURDAY = datetime(2024, 3, 16, 15, 30, tzinfo=timezone.utc)


def scanner(**overrides):
    return replace(get_default_config().scanner, **overrides)


class TestVIXLevel:
    """Test VIX classification"""

    @pytest.mark.parametrize("vix,expected", [
        (12.0, VIXLevel.LOW),
        (15.0, VIXLevel.MEDIUM),
        (24.9, VIXLevel.MEDIUM),
        (30.0, VIXLevel.HIGH),
        (35.0, VIXLevel.EXTREME),
    ])
    def test_from_value(self, vix, expected):
        assert VIXLevel.from_value(vix) == expected


class TestCategorizeStrategy:
    """Test strategy family lookup by detector type"""

    @pytest.mark.parametrize("opportunity_type,expected", [
        ("ltp_orb_breakout_long", StrategyCategory.BREAKOUT),
        ("mean_reversion_short", StrategyCategory.MEAN_REVERSION),
        ("trend_continuation_long", StrategyCategory.TREND_CONTINUATION),
        ("ltp_ema_bounce_short", StrategyCategory.TREND_CONTINUATION),
        ("gamma_squeeze_long", StrategyCategory.GAMMA),
        ("power_hour_long", StrategyCategory.REVERSAL),
        ("ltp_king_queen_long", StrategyCategory.BREAKOUT),
    ])
    def test_categories(self, opportunity_type, expected):
        assert categorize_strategy(opportunity_type) == expected

    def test_market_regime(self):
        assert market_regime(Regime.TRENDING_UP) == MarketRegime.TRENDING
        assert market_regime(Regime.TRENDING_DOWN) == MarketRegime.TRENDING
        assert market_regime(Regime.RANGING) == MarketRegime.RANGING
        assert market_regime(Regime.VOLATILE) == MarketRegime.VOLATILE


class TestAdaptiveThresholds:
    """Test the window, VIX and regime combination"""

    def test_breakout_disabled_in_range(self):
        thresholds = get_adaptive_thresholds(
            TimeOfDayWindow.MID_MORNING, VIXLevel.MEDIUM, MarketRegime.RANGING, "breakout_bullish"
        )

        assert thresholds.min_base == 95
        assert thresholds.min_style == 75
        assert thresholds.min_rr == pytest.approx(2.0)
        assert thresholds.size_multiplier == pytest.approx(1.0)
        assert not thresholds.strategy_enabled
        assert thresholds.label == "Mid-Morning"
        assert len(thresholds.warnings) == 2
        assert thresholds.warnings[0].startswith("breakout strategy not recommended in ranging regime")

    def test_trend_continuation_in_power_hour(self):
        thresholds = get_adaptive_thresholds(
            TimeOfDayWindow.POWER_HOUR, VIXLevel.LOW, MarketRegime.TRENDING, "ltp_ema_bounce_long"
        )

        assert thresholds.min_base == 63
        assert thresholds.min_style == 69
        assert thresholds.min_rr == pytest.approx(1.2)
        assert thresholds.size_multiplier == pytest.approx(1.32)
        assert thresholds.strategy_category == StrategyCategory.TREND_CONTINUATION
        assert thresholds.strategy_enabled
        assert thresholds.warnings == ()

    def test_extreme_volatility_at_lunch(self):
        thresholds = get_adaptive_thresholds(
            TimeOfDayWindow.LUNCH_CHOP, VIXLevel.EXTREME, MarketRegime.VOLATILE, "gamma_squeeze_long"
        )

        assert thresholds.min_base == 100
        assert thresholds.min_style == 100
        assert thresholds.min_rr == pytest.approx(2.9)
        assert thresholds.size_multiplier == pytest.approx(0.24)
        assert "Very high threshold - only best-in-class setups will qualify" in thresholds.warnings
        assert "Low position size recommended - high volatility environment" in thresholds.warnings

    def test_after_hours(self):
        thresholds = get_adaptive_thresholds(
            TimeOfDayWindow.AFTER_HOURS, VIXLevel.MEDIUM, MarketRegime.RANGING, "mean_reversion_long"
        )

        assert thresholds.min_base == 85
        assert thresholds.min_rr == pytest.approx(2.5)
        assert thresholds.warnings == (
            "Outside regular trading hours - conservative thresholds",
            "Low position size recommended - high volatility environment",
        )

    def test_weekend(self):
        thresholds = get_adaptive_thresholds(
            TimeOfDayWindow.WEEKEND, VIXLevel.HIGH, MarketRegime.CHOPPY, "breakout_bullish"
        )

        assert (thresholds.min_base, thresholds.min_style) == (60, 65)
        assert thresholds.min_rr == pytest.approx(1.3)
        assert thresholds.size_multiplier == 0.0
        assert thresholds.window == TimeOfDayWindow.WEEKEND


class TestResolveThresholds:
    """Test threshold selection from scanner parameters"""

    def test_static_regular_hours(self, features_factory):
        thresholds = resolve_thresholds(scanner(), features_factory(), "breakout_bullish")

        assert (thresholds.min_base, thresholds.min_style, thresholds.min_rr) == (60.0, 65.0, 1.5)
        assert thresholds.label == "Static"
        assert thresholds.strategy_enabled

    def test_static_off_hours(self):
        thresholds = static_thresholds(scanner(), is_regular_hours=False)

        assert (thresholds.min_base, thresholds.min_style, thresholds.min_rr) == (50.0, 55.0, 1.2)
        assert thresholds.label == "Off-Hours"

    def test_adaptive_from_snapshot(self, features_factory):
        features = features_factory(regime=Regime.TRENDING_UP, pattern=PatternFeatures(vix_level=VIXLevel.HIGH))

        thresholds = resolve_thresholds(scanner(adaptive_thresholds=True), features, "ltp_ema_bounce_long")

        assert thresholds.window == TimeOfDayWindow.MID_MORNING
        assert thresholds.vix_level == VIXLevel.HIGH
        assert (thresholds.min_base, thresholds.min_style) == (77, 80)
        assert thresholds.min_rr == pytest.approx(1.8)
        assert thresholds.size_multiplier == pytest.approx(0.7)

    def test_adaptive_assumes_medium_vix(self, features_factory):
        thresholds = resolve_thresholds(scanner(adaptive_thresholds=True), features_factory(), "mean_reversion_long")

        assert thresholds.vix_level == VIXLevel.MEDIUM
        assert thresholds.min_base == 72

    def test_adaptive_weekend(self, features_factory):
        features = features_factory(is_regular_hours=False, time=SATURDAY)

        thresholds = resolve_thresholds(scanner(adaptive_thresholds=True), features, "breakout_bullish")

        assert thresholds.label == "Weekend"
        assert thresholds.size_multiplier == 0.0


class TestPassesThresholds:
    """Test the order of threshold checks"""

    def test_disabled_strategy_checked_first(self):
        thresholds = Thresholds(70, 70, 1.5, strategy_enabled=False, regime=MarketRegime.RANGING, strategy_notes="no")

        check = passes_thresholds(thresholds, 0.0, 0.0, 0.0)

        assert not check.passed
        assert check.reason == REASON_STRATEGY_DISABLED
        assert check.detail == "Strategy disabled in ranging regime: no"

    @pytest.mark.parametrize("scores,reason", [
        ((60.0, 50.0, 1.0), REASON_BASE_SCORE),
        ((75.0, 60.0, 1.0), REASON_STYLE_SCORE),
        ((75.0, 75.0, 1.0), REASON_RISK_REWARD),
    ])
    def test_first_failure_reported(self, scores, reason):
        check = passes_thresholds(Thresholds(70, 70, 1.5), *scores)

        assert not check.passed
        assert check.reason == reason

    def test_passes(self):
        check = passes_thresholds(Thresholds(70, 70, 1.5), 70.0, 70.0, 1.5)

        assert check.passed
        assert check.reason is None
