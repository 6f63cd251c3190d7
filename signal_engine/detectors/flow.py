"""
Institutional options flow detectors.

Fire on heavy, aggressive, one-sided institutional flow: a high flow score,
repeated sweeps, large prints and buy (or sell) pressure all agreeing with
the flow bias.
"""

from typing import Optional

from signal_engine.data.models import OptionsChainData
from signal_engine.models.enums import Direction
from signal_engine.models.features import FlowAggressiveness, SymbolFeatures

from .base import ALL_ASSET_CLASSES, ScoreFactor, create_detector, should_run_detector

MIN_FLOW_SCORE = 80
MIN_SWEEPS = 5
MIN_BUY_PRESSURE = 70
MAX_BUY_PRESSURE_BEARISH = 30
MIN_LARGE_TRADE_PCT = 40

_AGGRESSIVE = (FlowAggressiveness.AGGRESSIVE, FlowAggressiveness.VERY_AGGRESSIVE)


def _flow_gate(features: SymbolFeatures, direction: Direction) -> bool:
    if not should_run_detector(features):
        return False

    flow = features.flow
    if flow.flow_score < MIN_FLOW_SCORE or flow.sweep_count < MIN_SWEEPS:
        return False

    if direction == Direction.LONG:
        if flow.buy_pressure < MIN_BUY_PRESSURE:
            return False
    elif flow.buy_pressure <= 0 or flow.buy_pressure > MAX_BUY_PRESSURE_BEARISH:
        return False

    if flow.large_trade_pct < MIN_LARGE_TRADE_PCT:
        return False
    if flow.aggressiveness not in _AGGRESSIVE:
        return False

    expected_bias = "bullish" if direction == Direction.LONG else "bearish"
    return flow.flow_bias == expected_bias


def detect_institutional_flow_bullish(
    features: SymbolFeatures,
    options_data: Optional[OptionsChainData] = None
) -> bool:
    return _flow_gate(features, Direction.LONG)


def detect_institutional_flow_bearish(
    features: SymbolFeatures,
    options_data: Optional[OptionsChainData] = None
) -> bool:
    return _flow_gate(features, Direction.SHORT)


def institutional_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    score = features.flow.flow_score
    if score >= 95:
        return 100.0
    if score >= 90:
        return 95.0
    if score >= 85:
        return 90.0
    if score >= 80:
        return 85.0
    return score


def sweep_intensity(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    sweeps = features.flow.sweep_count
    if sweeps >= 10:
        return 100.0
    if sweeps >= 8:
        return 95.0
    if sweeps >= 6:
        return 90.0
    if sweeps >= 5:
        return 85.0
    return 0.0


def _pressure_score(pressure: float) -> float:
    if pressure >= 85:
        return 100.0
    if pressure >= 80:
        return 95.0
    if pressure >= 75:
        return 90.0
    if pressure >= 70:
        return 85.0
    return 0.0


def buy_pressure_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _pressure_score(features.flow.buy_pressure)


def sell_pressure_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    return _pressure_score(100 - features.flow.buy_pressure)


def large_trade_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    pct = features.flow.large_trade_pct
    if pct >= 60:
        return 100.0
    if pct >= 50:
        return 90.0
    if pct >= 40:
        return 80.0
    return 0.0


def aggressiveness_score(features: SymbolFeatures, options_data: Optional[OptionsChainData] = None) -> float:
    aggressiveness = features.flow.aggressiveness
    if aggressiveness == FlowAggressiveness.VERY_AGGRESSIVE:
        return 100.0
    if aggressiveness == FlowAggressiveness.AGGRESSIVE:
        return 90.0
    return 50.0


institutional_flow_bullish = create_detector(
    type="institutional_flow_bullish",
    direction=Direction.LONG,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_institutional_flow_bullish,
    score_factors=(
        ScoreFactor("institutional_score", 0.35, institutional_score),
        ScoreFactor("sweep_intensity", 0.25, sweep_intensity),
        ScoreFactor("buy_sell_pressure", 0.20, buy_pressure_score),
        ScoreFactor("large_trade_pct", 0.15, large_trade_score),
        ScoreFactor("aggressiveness", 0.05, aggressiveness_score),
    ),
    ideal_timeframe="1m",
)

institutional_flow_bearish = create_detector(
    type="institutional_flow_bearish",
    direction=Direction.SHORT,
    asset_classes=ALL_ASSET_CLASSES,
    requires_options_data=False,
    detect=detect_institutional_flow_bearish,
    score_factors=(
        ScoreFactor("institutional_score", 0.35, institutional_score),
        ScoreFactor("sweep_intensity", 0.25, sweep_intensity),
        ScoreFactor("buy_sell_pressure", 0.20, sell_pressure_score),
        ScoreFactor("large_trade_pct", 0.15, large_trade_score),
        ScoreFactor("aggressiveness", 0.05, aggressiveness_score),
    ),
    ideal_timeframe="1m",
)

FLOW_DETECTORS = (institutional_flow_bullish, institutional_flow_bearish)
