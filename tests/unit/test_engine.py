"""Unit tests for the composite signal engine."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import Mock

import pytest

from signal_engine.config.defaults import get_default_config
from signal_engine.data.models import OptionsChainData
from signal_engine.detectors import ALL_DETECTORS, OpportunityDetector, ScoreFactor, create_detector
from signal_engine.engine import (
    REASON_COOLDOWN,
    REASON_DUPLICATE,
    REASON_NO_DETECTOR,
    REASON_RATE_LIMIT,
    CompositeSignalEngine,
    ScanRequest,
)
from signal_engine.gamma import analyze_gamma_context
from signal_engine.models.enums import AssetClass, Direction, Regime, TradingStyle, VIXLevel
from signal_engine.models.features import PatternFeatures, SymbolFeatures
from signal_engine.models.levels import LevelStrength, ReferenceLevels, StructureLevel, StructureLevelType
from signal_engine.signals.confidence import REASON_LOW_CONFIDENCE
from signal_engine.signals.deduplication import SignalDeduplication
from signal_engine.signals.thresholds import (
    REASON_BASE_SCORE,
    REASON_RISK_REWARD,
    REASON_STRATEGY_DISABLED,
    REASON_STYLE_SCORE,
)
from signal_engine.structure import structure_to_key_levels

SCAN_TIME = datetime(2024, 3, 15, 15, 30, tzinfo=timezone.utc)
ALL_CLASSES = (AssetClass.INDEX, AssetClass.EQUITY_ETF, AssetClass.STOCK)


def fixed_detector(
    type: str = "custom_long",
    score: float = 80.0,
    direction: Direction = Direction.LONG,
    requires_options_data: bool = False
) -> OpportunityDetector:
    return create_detector(
        type=type,
        direction=direction,
        asset_classes=ALL_CLASSES,
        requires_options_data=requires_options_data,
        detect=lambda features, options_data: True,
        score_factors=(ScoreFactor("fixed", 1.0, lambda f, o: score),),
    )


def scanner_config(**scanner: Any):
    config = get_default_config()
    return replace(config, scanner=replace(config.scanner, **scanner))


def permissive_config(**scanner: Any):
    """Thresholds that let any fired detector through."""
    values = dict(min_base_score=0.0, min_style_score=0.0, min_risk_reward=0.0)
    values.update(scanner)
    return scanner_config(**values)


def later(features: SymbolFeatures, minutes: int) -> SymbolFeatures:
    return replace(features, time=features.time + timedelta(minutes=minutes))


class TestCompositeSignalEngine:
    """Test suite for the CompositeSignalEngine class."""

    def test_engine_initialization(self) -> None:
        """Test that the engine builds the default registry."""
        engine = CompositeSignalEngine()
        assert len(engine.detectors) == len(ALL_DETECTORS)
        assert engine.deduplication is None
        assert engine.get_runtime_stats() == {"detectors": len(ALL_DETECTORS)}

    def test_no_detector_fired(self, features_factory) -> None:
        """Test that a quiet snapshot reports why nothing was emitted."""
        never = create_detector(
            type="never",
            direction=Direction.LONG,
            asset_classes=ALL_CLASSES,
            requires_options_data=False,
            detect=lambda features, options_data: False,
            score_factors=(),
        )
        result = CompositeSignalEngine(detectors=[never]).scan_symbol("SPY", features_factory())

        assert not result.emitted
        assert result.reason == REASON_NO_DETECTOR
        assert result.candidates == ()

    def test_emits_priced_signal(self, features_factory) -> None:
        """Test that a fired detector becomes a fully priced signal."""
        engine = CompositeSignalEngine(config=permissive_config(), detectors=[fixed_detector()])
        features = features_factory()

        result = engine.scan_symbol("SPY", features)

        assert result.emitted
        signal = result.signal
        assert signal.symbol == "SPY"
        assert signal.opportunity_type == "custom_long"
        assert signal.direction == Direction.LONG
        assert signal.asset_class == AssetClass.EQUITY_ETF
        assert signal.base_score == pytest.approx(80.0)
        assert signal.recommended_style == TradingStyle.SCALP
        assert signal.recommended_style_score == pytest.approx(100.0)
        assert signal.entry == 100.0
        assert signal.stop < signal.entry < signal.targets[0]
        assert signal.confluence == {"fixed": 80.0}
        assert signal.created_at == SCAN_TIME
        assert signal.expires_at == SCAN_TIME + timedelta(minutes=5)
        assert signal.bar_time_key == "SPY:2024-03-15T15:30:custom_long"
        assert signal.features is features
        assert signal.gamma_reasoning is None

    def test_scan_is_deterministic(self, features_factory) -> None:
        """Test that identical inputs without deduplication give identical results."""
        engine = CompositeSignalEngine(config=permissive_config(), detectors=[fixed_detector()])
        features = features_factory()
        assert engine.scan_symbol("SPY", features) == engine.scan_symbol("SPY", features)

    def test_highest_style_score_wins(self, features_factory) -> None:
        """Test that the best recommended style score is emitted."""
        engine = CompositeSignalEngine(
            config=permissive_config(),
            detectors=[fixed_detector("weaker", 50.0), fixed_detector("stronger", 60.0)],
        )

        result = engine.scan_symbol("SPY", features_factory())

        assert [c.detector_type for c in result.candidates] == ["weaker", "stronger"]
        assert result.signal.opportunity_type == "stronger"

    def test_ties_go_to_first_registered(self, features_factory) -> None:
        """Test that equal scores keep registry order."""
        engine = CompositeSignalEngine(
            config=permissive_config(),
            detectors=[fixed_detector("first"), fixed_detector("second")],
        )
        assert engine.scan_symbol("SPY", features_factory()).signal.opportunity_type == "first"

    def test_neutral_signal_leans_toward_magnet(self, features_factory) -> None:
        """Test that a neutral play above VWAP is risk-placed as a short."""
        engine = CompositeSignalEngine(
            config=permissive_config(),
            detectors=[fixed_detector("pin", direction=Direction.NEUTRAL)],
        )

        signal = engine.scan_symbol("SPY", features_factory(current=100.5, vwap=100.0)).signal

        assert signal.direction == Direction.NEUTRAL
        assert signal.stop > signal.entry > signal.targets[0]

    def test_gamma_context_adds_reasoning(self, features_factory, open_interest_rows) -> None:
        """Test that a fresh gamma context is explained on the signal."""
        context = analyze_gamma_context("SPY", 580.0, open_interest_rows, as_of=SCAN_TIME)
        engine = CompositeSignalEngine(config=permissive_config(), detectors=[fixed_detector()])

        signal = engine.scan_symbol("SPY", features_factory(), gamma_context=context).signal

        assert signal.gamma_reasoning

    def test_reference_levels_accepted(self, features_factory) -> None:
        """Test that ReferenceLevels are converted before stop placement."""
        engine = CompositeSignalEngine(config=permissive_config(), detectors=[fixed_detector()])

        signal = engine.scan_symbol(
            "SPY", features_factory(), key_levels=ReferenceLevels(prior_day_low=99.2)
        ).signal

        assert signal.stop_level_label == "Prior Day Low"
        assert signal.stop < 99.2

    def test_structure_levels_rejected(self, features_factory) -> None:
        """Test that unconverted structure levels are reported as bad input."""
        engine = CompositeSignalEngine(config=permissive_config(), detectors=[fixed_detector()])
        swing = StructureLevel(
            type=StructureLevelType.SWING_LOW,
            price=99.0,
            label="SwL 99.00",
            strength=LevelStrength.MAJOR,
            bar_index=3,
        )

        result = engine.scan_symbol("SPY", features_factory(), key_levels=[swing])

        assert not result.emitted
        assert result.reason.startswith("data_quality:")
        assert "StructureLevel" in result.reason
        converted = engine.scan_symbol("SPY", features_factory(), key_levels=structure_to_key_levels([swing]))
        assert converted.emitted


class TestThresholds:
    """Test suite for emission thresholds."""

    @pytest.mark.parametrize("scanner,reason", [
        ({"min_base_score": 90.0, "min_style_score": 0.0, "min_risk_reward": 0.0}, REASON_BASE_SCORE),
        ({"min_base_score": 0.0, "min_style_score": 101.0, "min_risk_reward": 0.0}, REASON_STYLE_SCORE),
        ({"min_base_score": 0.0, "min_style_score": 0.0, "min_risk_reward": 100.0}, REASON_RISK_REWARD),
    ])
    def test_threshold_failures(self, features_factory, scanner, reason) -> None:
        """Test that each threshold filters with its own reason."""
        engine = CompositeSignalEngine(config=scanner_config(**scanner), detectors=[fixed_detector()])

        result = engine.scan_symbol("SPY", features_factory())

        assert not result.emitted
        assert result.reason == reason
        assert len(result.candidates) == 1

    def test_off_hours_thresholds(self, features_factory) -> None:
        """Test that outside regular hours the weekend thresholds apply."""
        config = scanner_config(
            min_base_score=90.0,
            weekend_min_base_score=0.0,
            weekend_min_style_score=0.0,
            weekend_min_risk_reward=0.0,
        )
        engine = CompositeSignalEngine(config=config, detectors=[fixed_detector()])

        regular = engine.scan_symbol("SPY", features_factory())
        after_hours = engine.scan_symbol("SPY", features_factory(is_regular_hours=False, minutes_since_open=400))

        assert regular.reason == REASON_BASE_SCORE
        assert after_hours.emitted
        assert "Outside regular hours - liquidity may be thin" in after_hours.signal.warnings

    def test_adaptive_thresholds_disable_breakouts_in_ranges(self, features_factory) -> None:
        """Test that a breakout in a ranging market is filtered by the regime."""
        engine = CompositeSignalEngine(
            config=permissive_config(adaptive_thresholds=True),
            detectors=[fixed_detector("custom_breakout", 95.0)],
        )

        result = engine.scan_symbol("SPY", features_factory())

        assert result.reason == REASON_STRATEGY_DISABLED

    def test_adaptive_thresholds_size_the_signal(self, features_factory) -> None:
        """Test that adaptive thresholds pass a continuation and carry their size multiplier."""
        engine = CompositeSignalEngine(
            config=permissive_config(adaptive_thresholds=True),
            detectors=[fixed_detector("ltp_ema_bounce_long", 90.0)],
        )
        features = features_factory(regime=Regime.TRENDING_UP, pattern=PatternFeatures(vix_level=VIXLevel.LOW))

        result = engine.scan_symbol("SPY", features)

        assert result.emitted
        assert result.signal.size_multiplier == pytest.approx(1.2)

    def test_adaptive_thresholds_raise_the_bar(self, features_factory) -> None:
        """Test that a score passing the static minimum can fail the adaptive one."""
        static = CompositeSignalEngine(
            config=scanner_config(min_style_score=0.0, min_risk_reward=0.0),
            detectors=[fixed_detector("ltp_ema_bounce_long", 65.0)],
        )
        adaptive = CompositeSignalEngine(
            config=scanner_config(min_style_score=0.0, min_risk_reward=0.0, adaptive_thresholds=True),
            detectors=[fixed_detector("ltp_ema_bounce_long", 65.0)],
        )
        features = features_factory(regime=Regime.TRENDING_UP)

        assert static.scan_symbol("SPY", features).emitted
        assert adaptive.scan_symbol("SPY", features).reason == REASON_BASE_SCORE


class TestDataConfidence:
    """Test suite for data confidence scaling."""

    def test_scores_scaled_by_confidence(self, features_factory) -> None:
        """Test that partial data scales base and style scores."""
        engine = CompositeSignalEngine(
            config=permissive_config(confidence_scoring=True), detectors=[fixed_detector()]
        )

        signal = engine.scan_symbol("SPY", features_factory()).signal

        assert signal.data_confidence == pytest.approx(72.0)
        assert signal.base_score == pytest.approx(58.0)
        assert signal.recommended_style_score == pytest.approx(72.0)
        assert any(warning.startswith("Data confidence medium") for warning in signal.warnings)

    def test_low_confidence_filtered(self, features_factory) -> None:
        """Test that missing critical inputs filter the candidate."""
        engine = CompositeSignalEngine(
            config=permissive_config(confidence_scoring=True), detectors=[fixed_detector()]
        )

        result = engine.scan_symbol("SPY", features_factory(atr=0.0, rvol=0.0))

        assert not result.emitted
        assert result.reason == REASON_LOW_CONFIDENCE
        assert len(result.candidates) == 1

    def test_disabled_by_default(self, features_factory) -> None:
        """Test that scores are untouched unless confidence scoring is enabled."""
        engine = CompositeSignalEngine(config=permissive_config(), detectors=[fixed_detector()])

        signal = engine.scan_symbol("SPY", features_factory()).signal

        assert signal.data_confidence is None
        assert signal.base_score == pytest.approx(80.0)


class TestDeduplication:
    """Test suite for cooldowns, hourly caps and duplicates."""

    def test_cooldown_suppresses_repeat(self, features_factory) -> None:
        """Test that the same opportunity is suppressed inside the cooldown."""
        dedup = SignalDeduplication()
        engine = CompositeSignalEngine(
            config=permissive_config(), detectors=[fixed_detector()], deduplication=dedup
        )
        features = features_factory()

        first = engine.scan_symbol("SPY", features)
        repeat = engine.scan_symbol("SPY", later(features, 5))
        after_cooldown = engine.scan_symbol("SPY", later(features, 20))

        assert first.emitted
        assert repeat.reason == REASON_COOLDOWN
        assert after_cooldown.emitted
        assert engine.get_runtime_stats()["deduplication"]["total_signals"] == 2

    def test_hourly_cap(self, features_factory) -> None:
        """Test that the per-symbol hourly cap applies across types."""
        engine = CompositeSignalEngine(
            config=permissive_config(cooldown_minutes=0, max_signals_per_symbol_per_hour=1),
            detectors=[fixed_detector()],
            deduplication=SignalDeduplication(),
        )
        features = features_factory()

        assert engine.scan_symbol("SPY", features).emitted
        assert engine.scan_symbol("SPY", later(features, 1)).reason == REASON_RATE_LIMIT

    def test_same_bar_duplicate(self, features_factory) -> None:
        """Test that a rescan of the same bar is a duplicate."""
        engine = CompositeSignalEngine(
            config=permissive_config(cooldown_minutes=0),
            detectors=[fixed_detector()],
            deduplication=SignalDeduplication(),
        )
        features = features_factory()

        assert engine.scan_symbol("SPY", features).emitted
        assert engine.scan_symbol("SPY", features).reason == REASON_DUPLICATE

    def test_filtered_candidates_not_recorded(self, features_factory) -> None:
        """Test that only emitted signals start a cooldown."""
        dedup = SignalDeduplication()
        engine = CompositeSignalEngine(
            config=scanner_config(min_base_score=90.0), detectors=[fixed_detector()], deduplication=dedup
        )

        engine.scan_symbol("SPY", features_factory())

        assert dedup.get_stats()["total_signals"] == 0


class TestOptionsData:
    """Test suite for options data resolution."""

    def test_provider_used_for_indices(self, features_factory) -> None:
        """Test that index symbols pull options data from the provider."""
        provider = Mock()
        provider.get_options_data.return_value = OptionsChainData(max_gamma_strike=100.0)
        engine = CompositeSignalEngine(
            detectors=[fixed_detector("needs_options", requires_options_data=True)],
            options_provider=provider,
        )

        result = engine.scan_symbol("SPX", features_factory())

        provider.get_options_data.assert_called_once_with("SPX")
        assert [c.detector_type for c in result.candidates] == ["needs_options"]

    def test_provider_not_used_for_stocks(self, features_factory) -> None:
        """Test that non-index symbols skip options-only detectors without context."""
        provider = Mock()
        engine = CompositeSignalEngine(
            detectors=[fixed_detector("needs_options", requires_options_data=True)],
            options_provider=provider,
        )

        result = engine.scan_symbol("TSLA", features_factory())

        provider.get_options_data.assert_not_called()
        assert result.reason == REASON_NO_DETECTOR

    def test_provider_failure_degrades(self, features_factory) -> None:
        """Test that a failing provider never fails the scan."""
        provider = Mock()
        provider.get_options_data.side_effect = ConnectionError("chain unavailable")
        engine = CompositeSignalEngine(
            detectors=[fixed_detector("needs_options", requires_options_data=True)],
            options_provider=provider,
        )

        assert engine.scan_symbol("SPX", features_factory()).reason == REASON_NO_DETECTOR

    def test_explicit_options_data(self, features_factory) -> None:
        """Test that caller supplied options data is used as is."""
        engine = CompositeSignalEngine(detectors=[fixed_detector("needs_options", requires_options_data=True)])
        result = engine.scan_symbol("SPY", features_factory(), options_data=OptionsChainData())
        assert result.candidates


class TestScanMany:
    """Test suite for batch scanning."""

    def test_results_in_request_order(self, features_factory) -> None:
        """Test that each request is scanned independently and in order."""
        engine = CompositeSignalEngine(config=permissive_config(), detectors=[fixed_detector()])

        results = engine.scan_many([
            ScanRequest("QQQ", features_factory()),
            ScanRequest("SPY", features_factory(current=0.0)),
            ScanRequest("IWM", features_factory()),
        ])

        assert [r.symbol for r in results] == ["QQQ", "SPY", "IWM"]
        assert [r.emitted for r in results] == [True, False, True]
