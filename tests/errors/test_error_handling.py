"""
Error handling tests for the signal engine.

Tests cover the error hierarchy, bar validation during feature synthesis,
detector isolation, and the conversion of errors into scan results.
"""

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest

from signal_engine.detectors import ScoreFactor, create_detector
from signal_engine.engine import REASON_NO_DETECTOR, CompositeSignalEngine, ScanRequest
from signal_engine.errors import (
    ContextProviderError,
    DataQualityError,
    DetectorEvaluationError,
    GracefulDegradationError,
    InsufficientDataError,
    MalformedDataError,
    MetricsCalculationError,
    MissingDataError,
    StaleDataError,
    SystemFailureError,
)
from signal_engine.features import FeatureBuilder
from signal_engine.gamma import analyze_gamma_context, ensure_fresh
from signal_engine.models.enums import AssetClass, Direction

# Matches the snapshot time of features_factory
SCAN_TIME = datetime(2024, 3, 15, 15, 30, tzinfo=timezone.utc)


def always_fires(type="always", factor=None, requires_options_data=False):
    return create_detector(
        type=type,
        direction=Direction.LONG,
        asset_classes=(AssetClass.EQUITY_ETF,),
        requires_options_data=requires_options_data,
        detect=lambda features, options_data: True,
        score_factors=(ScoreFactor("fixed", 1.0, factor or (lambda f, o: 80.0)),),
    )


def raising_gate(error, type="broken"):
    def gate(features, options_data):
        raise error

    return create_detector(
        type=type,
        direction=Direction.LONG,
        asset_classes=(AssetClass.EQUITY_ETF,),
        requires_options_data=False,
        detect=gate,
        score_factors=(),
    )


class TestErrorClassification:
    """Test error classification system."""

    def test_data_quality_error_hierarchy(self):
        """Test that data quality errors have proper hierarchy."""
        base_error = DataQualityError("base error")
        assert base_error.recoverable is True
        assert base_error.context == {}

        missing_error = MissingDataError("missing data", data_type="bar")
        assert isinstance(missing_error, DataQualityError)
        assert missing_error.data_type == "bar"

        malformed_error = MalformedDataError("bad price", raw_data="nan", expected_format="finite float")
        assert malformed_error.raw_data == "nan"
        assert malformed_error.expected_format == "finite float"

        insufficient_error = InsufficientDataError("too few bars", required_count=14, available_count=3)
        assert insufficient_error.required_count == 14
        assert insufficient_error.available_count == 3

        stale_error = StaleDataError("old gamma", age_minutes=45.0, threshold_minutes=30.0, context={"k": 1})
        assert isinstance(stale_error, DataQualityError)
        assert stale_error.age_minutes == 45.0
        assert stale_error.context == {"k": 1}

    def test_system_failure_error_hierarchy(self):
        """Test that system failure errors have proper hierarchy."""
        metrics_error = MetricsCalculationError("calculation failed", metric_name="atr")
        assert isinstance(metrics_error, SystemFailureError)
        assert metrics_error.recoverable is False
        assert metrics_error.metric_name == "atr"

        detector_error = DetectorEvaluationError("factor failed", detector_type="breakout_bullish",
                                                 factor_name="volume")
        assert detector_error.recoverable is False
        assert detector_error.detector_type == "breakout_bullish"
        assert detector_error.factor_name == "volume"

    def test_graceful_degradation_error(self):
        """Test graceful degradation error functionality."""
        degradation_error = GracefulDegradationError(
            "degraded mode",
            degraded_functionality="live_gamma",
            fallback_strategy="default"
        )
        assert degradation_error.allows_degradation is True
        assert degradation_error.degraded_functionality == "live_gamma"
        assert degradation_error.fallback_strategy == "default"

    def test_context_provider_error_defaults_to_historical(self):
        """Provider failures fall back to historical reconstruction by default."""
        error = ContextProviderError("flow down", provider="flow", symbol="SPY")
        assert isinstance(error, GracefulDegradationError)
        assert error.fallback_strategy == "historical"
        assert error.provider == "flow"
        assert error.symbol == "SPY"


class TestFeatureBuilderErrorHandling:
    """Test bar validation and calculation failures during feature synthesis."""

    def test_missing_current_bar(self, uptrend_bars):
        """Test that a missing current bar is reported as missing data."""
        with pytest.raises(MissingDataError) as exc_info:
            FeatureBuilder().build("SPY", None, uptrend_bars)
        assert exc_info.value.data_type == "bar"

    def test_inconsistent_ohlc(self, bar_factory):
        """Test that a high below the close is malformed."""
        with pytest.raises(MalformedDataError, match="High price less than open/close"):
            FeatureBuilder().build("SPY", bar_factory(0, 100.0, 100.5, 99.5, 101.0), [])

    @pytest.mark.parametrize("close", [math.nan, math.inf, -1.0])
    def test_invalid_price_values(self, bar_factory, close):
        """Test that non-finite and non-positive prices are malformed."""
        with pytest.raises(MalformedDataError):
            FeatureBuilder().build("SPY", bar_factory(0, 100.0, 101.0, 99.0, close), [])

    def test_negative_volume(self, bar_factory):
        """Test that negative volume is malformed."""
        with pytest.raises(MalformedDataError, match="Invalid volume value"):
            FeatureBuilder().build("SPY", bar_factory(0, 100.0, 101.0, 99.0, 100.5, volume=-5.0), [])

    def test_indicator_failure_is_wrapped(self, uptrend_bars):
        """Test that indicator exceptions surface as metrics calculation errors."""
        with patch("signal_engine.features.builder.calculate_rsi", side_effect=ValueError("boom")):
            with pytest.raises(MetricsCalculationError) as exc_info:
                FeatureBuilder().build("SPY", uptrend_bars[-1], uptrend_bars[:-1])

        assert exc_info.value.metric_name == "ema_rsi"
        assert "boom" in str(exc_info.value)

    def test_atr_failure_is_wrapped(self, uptrend_bars):
        """Test that ATR exceptions carry the bar count."""
        with patch("signal_engine.features.builder.calculate_atr_or_partial", side_effect=ZeroDivisionError("x")):
            with pytest.raises(MetricsCalculationError) as exc_info:
                FeatureBuilder().build("SPY", uptrend_bars[-1], uptrend_bars[:-1])

        assert exc_info.value.metric_name == "atr"
        assert exc_info.value.calculation_input["bar_count"] == len(uptrend_bars)


class TestDetectorErrorHandling:
    """Test detector evaluation failures."""

    def test_gate_failure_names_detector(self, features_factory):
        """Test that gate exceptions are wrapped with the detector type."""
        detector = raising_gate(KeyError("rsi"))

        with pytest.raises(DetectorEvaluationError) as exc_info:
            detector.detect_with_score(features_factory())

        assert exc_info.value.detector_type == "broken"
        assert exc_info.value.factor_name is None

    def test_factor_failure_names_factor(self, features_factory):
        """Test that factor exceptions are wrapped with the factor name."""
        def factor(features, options_data):
            raise ZeroDivisionError("division by zero")

        with pytest.raises(DetectorEvaluationError) as exc_info:
            always_fires(factor=factor).detect_with_score(features_factory())

        assert exc_info.value.detector_type == "always"
        assert exc_info.value.factor_name == "fixed"

    def test_data_quality_errors_pass_through(self, features_factory):
        """Test that data quality errors are not reclassified."""
        detector = raising_gate(InsufficientDataError("no history", required_count=20, available_count=2))

        with pytest.raises(InsufficientDataError):
            detector.detect_with_score(features_factory())


class TestEngineErrorHandling:
    """Test error isolation in the composite engine."""

    def test_zero_price_is_data_quality(self, features_factory):
        """Test that a zero price never reaches the detectors."""
        detector = always_fires()
        engine = CompositeSignalEngine(detectors=[detector])

        result = engine.scan_symbol("SPY", features_factory(current=0.0))

        assert not result.emitted
        assert result.reason.startswith("data_quality:")
        assert result.candidates == ()

    def test_nan_price_is_data_quality(self, features_factory):
        """Test that a non-finite price is reported as malformed data."""
        features = features_factory()
        features = replace(features, price=replace(features.price, current=math.nan))

        result = CompositeSignalEngine(detectors=[always_fires()]).scan_symbol("SPY", features)

        assert result.reason.startswith("data_quality: Invalid price value")

    def test_failing_detector_is_skipped(self, features_factory):
        """Test that one failing detector does not stop the others."""
        engine = CompositeSignalEngine(detectors=[
            raising_gate(RuntimeError("gate bug")),
            raising_gate(InsufficientDataError("no history"), type="thin"),
            always_fires(),
        ])

        result = engine.scan_symbol("SPY", features_factory())

        assert [candidate.detector_type for candidate in result.candidates] == ["always"]

    def test_all_detectors_failing(self, features_factory):
        """Test that failing detectors read as nothing fired."""
        engine = CompositeSignalEngine(detectors=[raising_gate(RuntimeError("gate bug"))])
        result = engine.scan_symbol("SPY", features_factory())
        assert result.reason == REASON_NO_DETECTOR

    def test_system_failure_becomes_reason(self, features_factory):
        """Test that system failures are converted into a scan result."""
        engine = CompositeSignalEngine(detectors=[always_fires()])

        with patch.object(engine, "_detect", side_effect=MetricsCalculationError("atr broke", metric_name="atr")):
            result = engine.scan_symbol("SPY", features_factory())

        assert result.reason == "system_failure: atr broke"

    def test_provider_error_is_degradation(self):
        """Test that an options provider failure is raised as ContextProviderError."""
        provider = Mock()
        provider.get_options_data.side_effect = ConnectionError("chain busy")
        engine = CompositeSignalEngine(detectors=[always_fires()], options_provider=provider)

        with pytest.raises(ContextProviderError) as exc_info:
            engine._fetch_options_data("SPX")

        assert exc_info.value.provider == "options"
        assert exc_info.value.symbol == "SPX"
        assert exc_info.value.fallback_strategy == "gamma_context"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_provider_error_falls_back_to_gamma_context(self, features_factory, open_interest_rows):
        """Test that a failed provider degrades to inputs derived from the gamma context."""
        provider = Mock()
        provider.get_options_data.side_effect = ConnectionError("chain busy")
        detector = create_detector(
            type="needs_options",
            direction=Direction.LONG,
            asset_classes=(AssetClass.INDEX,),
            requires_options_data=True,
            detect=lambda features, options_data: options_data is not None,
            score_factors=(ScoreFactor("fixed", 1.0, lambda f, o: 80.0),),
        )
        engine = CompositeSignalEngine(detectors=[detector], options_provider=provider)
        context = analyze_gamma_context("SPX", 580.0, open_interest_rows, as_of=SCAN_TIME)

        result = engine.scan_symbol("SPX", features_factory(), gamma_context=context)

        provider.get_options_data.assert_called_once_with("SPX")
        assert [c.detector_type for c in result.candidates] == ["needs_options"]

    def test_unexpected_error_becomes_reason(self, features_factory):
        """Test that unexpected errors never escape scan_symbol."""
        engine = CompositeSignalEngine(detectors=[always_fires()])

        with patch.object(engine, "_detect", side_effect=RuntimeError("surprise")):
            result = engine.scan_symbol("SPY", features_factory())

        assert result.reason == "error: surprise"

    def test_scan_many_isolates_symbols(self, features_factory):
        """Test that a bad snapshot does not affect the next symbol."""
        engine = CompositeSignalEngine(detectors=[always_fires()])
        results = engine.scan_many([
            ScanRequest("SPY", features_factory(current=0.0)),
            ScanRequest("SPY", features_factory()),
        ])

        assert results[0].reason.startswith("data_quality:")
        assert results[1].candidates


class TestStaleGammaContext:
    """Test freshness handling of dealer positioning context."""

    def test_ensure_fresh_returns_context(self, open_interest_rows):
        """Test that a fresh context passes through unchanged."""
        context = analyze_gamma_context("SPY", 580.0, open_interest_rows, as_of=SCAN_TIME)
        assert ensure_fresh(context, SCAN_TIME + timedelta(minutes=5)) is context

    def test_ensure_fresh_raises(self, open_interest_rows):
        """Test that an old context raises with its age and threshold."""
        context = analyze_gamma_context("SPY", 580.0, open_interest_rows, as_of=SCAN_TIME)

        with pytest.raises(StaleDataError) as exc_info:
            ensure_fresh(context, SCAN_TIME + timedelta(minutes=45))

        assert exc_info.value.age_minutes == pytest.approx(45.0)
        assert exc_info.value.threshold_minutes == pytest.approx(30.0)

    def test_unstamped_context_is_stale(self, open_interest_rows):
        """Test that a context without a computed time is never trusted."""
        context = analyze_gamma_context("SPY", 580.0, open_interest_rows)

        with pytest.raises(StaleDataError) as exc_info:
            ensure_fresh(context, SCAN_TIME)
        assert exc_info.value.age_minutes is None

    def test_engine_ignores_stale_context(self, features_factory, open_interest_rows):
        """Test that the engine drops a stale context instead of failing."""
        gate = Mock(return_value=True)
        detector = create_detector(
            type="needs_options",
            direction=Direction.LONG,
            asset_classes=(AssetClass.EQUITY_ETF,),
            requires_options_data=True,
            detect=gate,
            score_factors=(ScoreFactor("fixed", 1.0, lambda f, o: 80.0),),
        )
        engine = CompositeSignalEngine(detectors=[detector])
        stale = analyze_gamma_context("SPY", 580.0, open_interest_rows, as_of=SCAN_TIME - timedelta(minutes=40))
        fresh = analyze_gamma_context("SPY", 580.0, open_interest_rows, as_of=SCAN_TIME - timedelta(minutes=5))

        stale_result = engine.scan_symbol("SPY", features_factory(), gamma_context=stale)
        fresh_result = engine.scan_symbol("SPY", features_factory(), gamma_context=fresh)

        assert stale_result.reason == REASON_NO_DETECTOR
        assert [c.detector_type for c in fresh_result.candidates] == ["needs_options"]
        gate.assert_called_once()
