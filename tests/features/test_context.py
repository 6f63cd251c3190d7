"""Tests for tiered context resolution, flow aggregation and session hours"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from signal_engine.config.defaults import FlowParams, SessionParams
from signal_engine.data.models import FlowClassification, FlowSide, OptionsFlowRecord
from signal_engine.features import fetch_live_contexts, resolve_context
from signal_engine.features.flow import default_flow, flow_bias, replay_flow, score_from_bias_ratio
from signal_engine.features.session import is_regular_hours, minutes_since_open
from signal_engine.models.features import ContextTier

AS_OF = datetime(2024, 3, 15, 15, 30, tzinfo=timezone.utc)


class TestResolveContext:
    """Test live -> historical -> default resolution"""

    def test_live_tier_wins(self):
        """Live value is used when available"""
        resolved = resolve_context(lambda: "live", lambda: "historical", lambda: "default")
        assert resolved.tier == ContextTier.LIVE
        assert resolved.value == "live"
        assert resolved.reason is None

    def test_live_none_falls_through(self):
        """A live source returning None falls through to historical"""
        resolved = resolve_context(lambda: None, lambda: "historical", lambda: "default")
        assert resolved.tier == ContextTier.HISTORICAL
        assert resolved.value == "historical"
        assert "live empty" in resolved.reason

    def test_live_exception_falls_through(self):
        """A live source raising falls through without propagating"""
        def broken():
            raise ConnectionError("provider down")

        resolved = resolve_context(broken, lambda: "historical", lambda: "default")
        assert resolved.tier == ContextTier.HISTORICAL
        assert "provider down" in resolved.reason

    def test_default_when_all_fail(self):
        """Default is used when no earlier tier produces a value"""
        def broken():
            raise RuntimeError("boom")

        resolved = resolve_context(None, broken, lambda: "default")
        assert resolved.tier == ContextTier.DEFAULT
        assert resolved.value == "default"
        assert "live unavailable" in resolved.reason
        assert "historical failed" in resolved.reason


class TestFetchLiveContexts:
    """Test concurrent live fetches"""

    def test_no_providers(self):
        """No providers yields an empty live context"""
        live = fetch_live_contexts("SPY")
        assert live.flow is None
        assert live.gamma is None
        assert live.errors == ()

    def test_failure_is_isolated(self):
        """One failing provider does not affect the other"""
        flow_provider = Mock()
        flow_provider.get_flow_context.side_effect = ConnectionError("refused")
        gamma_provider = Mock()
        gamma_provider.get_gamma_context.return_value = "gamma-context"

        live = fetch_live_contexts("SPY", flow_provider, gamma_provider, timeout=2.0)

        assert live.flow is None
        assert live.gamma == "gamma-context"
        assert len(live.errors) == 1
        assert live.errors[0] == "Live flow context fetch failed: refused"
        gamma_provider.get_gamma_context.assert_called_once_with("SPY")


class TestFlowAggregation:
    """Test flow replay and defaults"""

    def record(self, minutes_ago, side, classification, premium):
        return OptionsFlowRecord(
            time=AS_OF - timedelta(minutes=minutes_ago),
            side=side,
            classification=classification,
            premium=premium,
        )

    def test_replay_bullish_window(self):
        """Bullish premium share above 70% scores 85"""
        records = [
            self.record(5, FlowSide.BULLISH, FlowClassification.SWEEP, 100_000),
            self.record(10, FlowSide.BULLISH, FlowClassification.SWEEP, 100_000),
            self.record(15, FlowSide.BULLISH, FlowClassification.SWEEP, 100_000),
            self.record(20, FlowSide.BEARISH, FlowClassification.BLOCK, 50_000),
        ]
        flow = replay_flow(records, AS_OF, FlowParams())

        assert flow.source == ContextTier.HISTORICAL
        assert flow.sweep_count == 3
        assert flow.block_count == 1
        assert flow.total_premium == 350_000
        assert flow.flow_score == 85.0
        assert flow.flow_bias == "bullish"
        assert flow.institutional_conviction == pytest.approx(3 * 5 + 3.5)

    def test_replay_excludes_prints_outside_window(self):
        """Prints older than the window or after as_of are ignored"""
        records = [
            self.record(90, FlowSide.BULLISH, FlowClassification.SWEEP, 100_000),
            self.record(-5, FlowSide.BULLISH, FlowClassification.SWEEP, 100_000),
        ]
        assert replay_flow(records, AS_OF, FlowParams()) is None

    def test_score_from_bias_ratio(self):
        """Bias ratio buckets"""
        assert score_from_bias_ratio(0.8) == 85.0
        assert score_from_bias_ratio(0.65) == 70.0
        assert score_from_bias_ratio(0.5) == 50.0
        assert score_from_bias_ratio(0.35) == 30.0
        assert score_from_bias_ratio(0.2) == 15.0

    def test_default_flow(self):
        """Default flow is neutral"""
        params = FlowParams()
        flow = default_flow(params)
        assert flow.source == ContextTier.DEFAULT
        assert flow.flow_score == params.default_score
        assert flow.institutional_conviction == params.default_conviction
        assert flow_bias(flow.flow_score, params) == "neutral"


class TestSessionHours:
    """Test regular trading hours classification"""

    def test_default_utc_session(self):
        """Default session runs 14:30-21:00 UTC"""
        params = SessionParams()
        assert is_regular_hours(AS_OF, params)
        assert minutes_since_open(AS_OF, params) == 60
        assert not is_regular_hours(AS_OF.replace(hour=14, minute=29), params)
        assert not is_regular_hours(AS_OF.replace(hour=21, minute=0), params)

    def test_weekend_is_closed(self):
        """Saturday is never regular hours"""
        saturday = AS_OF + timedelta(days=1)
        assert not is_regular_hours(saturday, SessionParams())
        assert minutes_since_open(saturday, SessionParams()) == 0

    def test_exchange_timezone(self):
        """Session hours can be anchored in the exchange timezone"""
        params = SessionParams(timezone="America/New_York", rth_open_hour=9, rth_open_minute=30, rth_close_hour=16)
        # 14:30 UTC is 10:30 EDT on 2024-03-15
        ts = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)
        assert is_regular_hours(ts, params)
        assert minutes_since_open(ts, params) == 60
