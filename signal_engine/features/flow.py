"""Options flow aggregation: live context, historical replay and neutral defaults"""

from datetime import datetime, timedelta
from typing import Optional

from signal_engine.config.defaults import FlowParams
from signal_engine.data.models import FlowClassification, FlowSide, OptionsFlowRecord
from signal_engine.models.features import ContextTier, FlowContext, FlowFeatures


def flow_bias(score: float, params: FlowParams) -> str:
    """Directional bias from a 0-100 flow score."""
    if score > params.bullish_threshold:
        return "bullish"
    if score < params.bearish_threshold:
        return "bearish"
    return "neutral"


def score_from_bias_ratio(bias_ratio: float) -> float:
    """Map the bullish share of premium to a flow score."""
    if bias_ratio > 0.7:
        return 85.0
    if bias_ratio > 0.6:
        return 70.0
    if bias_ratio < 0.3:
        return 15.0
    if bias_ratio < 0.4:
        return 30.0
    return 50.0


def default_flow(params: FlowParams) -> FlowFeatures:
    """Documented neutral flow block."""
    return FlowFeatures(
        flow_score=params.default_score,
        flow_bias=flow_bias(params.default_score, params),
        institutional_conviction=params.default_conviction,
        source=ContextTier.DEFAULT,
    )


def flow_from_live(context: FlowContext, params: FlowParams) -> FlowFeatures:
    """Flow block from a live provider context."""
    return FlowFeatures(
        sweep_count=context.sweep_count,
        block_count=context.block_count,
        total_premium=context.total_premium,
        flow_score=context.flow_score,
        flow_bias=flow_bias(context.flow_score, params),
        institutional_conviction=context.institutional_conviction,
        buy_pressure=context.buy_pressure,
        large_trade_pct=context.large_trade_pct,
        aggressiveness=context.aggressiveness,
        source=ContextTier.LIVE,
    )


def replay_flow(
    records: list[OptionsFlowRecord],
    as_of: datetime,
    params: FlowParams
) -> Optional[FlowFeatures]:
    """
    Reconstruct the flow block from historical prints.

    Only prints inside (as_of - window, as_of] are replayed.

    Args:
        records: Historical flow prints
        as_of: Current bar time
        params: Flow parameters

    Returns:
        Flow features, or None when the window holds no prints
    """
    window_start = as_of - timedelta(minutes=params.window_minutes)
    window = [r for r in records if window_start < r.time <= as_of]
    if not window:
        return None

    sweeps = sum(1 for r in window if r.classification == FlowClassification.SWEEP)
    blocks = sum(1 for r in window if r.classification == FlowClassification.BLOCK)
    bullish_premium = sum(r.premium for r in window if r.side == FlowSide.BULLISH)
    bearish_premium = sum(r.premium for r in window if r.side == FlowSide.BEARISH)
    total_premium = bullish_premium + bearish_premium

    score = params.default_score
    if total_premium > 0:
        score = score_from_bias_ratio(bullish_premium / total_premium)

    conviction = min(100.0, sweeps * 5 + total_premium / 100000)

    return FlowFeatures(
        sweep_count=sweeps,
        block_count=blocks,
        total_premium=total_premium,
        flow_score=score,
        flow_bias=flow_bias(score, params),
        institutional_conviction=conviction,
        source=ContextTier.HISTORICAL,
    )
