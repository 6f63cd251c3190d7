"""
Data confidence scoring.

A snapshot built from partial data (weekend analysis, provider outages, thin
history) should not score like a complete one. Each input carries a weight;
the weighted share that is present sets the completeness, and every missing
critical input caps confidence by 15 points. The resulting multiplier scales
detector and style scores.
"""

import math
from dataclasses import dataclass, field, fields
from typing import Optional

from signal_engine.models.features import ContextTier, SymbolFeatures

REASON_LOW_CONFIDENCE = "low_data_confidence"

CRITICAL_PENALTY = 15
MIN_SWING_BARS = 5


@dataclass(frozen=True)
class DataWeight:
    weight: float
    critical: bool
    category: str


@dataclass(frozen=True)
class DataAvailability:
    """Which inputs a snapshot actually carries."""
    price: bool
    price_change: bool
    volume: bool
    volume_avg: bool
    relative_volume: bool
    vwap: bool
    vwap_distance: bool
    rsi: bool
    ema: bool
    atr: bool
    mtf_1m: bool
    mtf_5m: bool
    mtf_15m: bool
    mtf_60m: bool
    flow: bool
    flow_score: bool
    flow_bias: bool
    orb: bool
    prior_day_levels: bool
    swing_levels: bool
    vix_level: bool
    market_regime: bool
    session: bool


DEFAULT_DATA_WEIGHTS = {
    "price": DataWeight(20, True, "price"),
    "price_change": DataWeight(5, False, "price"),
    "volume": DataWeight(12, True, "volume"),
    "volume_avg": DataWeight(5, False, "volume"),
    "relative_volume": DataWeight(8, False, "volume"),
    "vwap": DataWeight(10, False, "technical"),
    "vwap_distance": DataWeight(5, False, "technical"),
    "rsi": DataWeight(8, False, "technical"),
    "ema": DataWeight(6, False, "technical"),
    "atr": DataWeight(10, True, "technical"),
    "mtf_1m": DataWeight(2, False, "mtf"),
    "mtf_5m": DataWeight(4, False, "mtf"),
    "mtf_15m": DataWeight(3, False, "mtf"),
    "mtf_60m": DataWeight(2, False, "mtf"),
    "flow": DataWeight(5, False, "flow"),
    "flow_score": DataWeight(4, False, "flow"),
    "flow_bias": DataWeight(3, False, "flow"),
    "orb": DataWeight(3, False, "pattern"),
    "prior_day_levels": DataWeight(4, False, "pattern"),
    "swing_levels": DataWeight(2, False, "pattern"),
    "vix_level": DataWeight(5, False, "context"),
    "market_regime": DataWeight(5, False, "context"),
    "session": DataWeight(3, False, "context"),
}

# Off-hours snapshots have no live volume, VWAP or flow; lean on history instead
WEEKEND_DATA_WEIGHTS = {
    **DEFAULT_DATA_WEIGHTS,
    "volume": DataWeight(5, False, "volume"),
    "relative_volume": DataWeight(2, False, "volume"),
    "vwap": DataWeight(3, False, "technical"),
    "vwap_distance": DataWeight(2, False, "technical"),
    "flow": DataWeight(2, False, "flow"),
    "flow_score": DataWeight(1, False, "flow"),
    "flow_bias": DataWeight(1, False, "flow"),
    "prior_day_levels": DataWeight(10, False, "pattern"),
    "swing_levels": DataWeight(8, False, "pattern"),
}


@dataclass(frozen=True)
class ConfidenceResult:
    completeness: float                 # Weighted percent of inputs present
    base_confidence: float              # 100 less the critical penalty
    adjusted_confidence: float          # Final 0-100 confidence
    multiplier: float                   # adjusted_confidence / 100
    total_weight: float
    available_weight: float
    missing_critical: tuple[str, ...] = ()
    missing_important: tuple[str, ...] = ()
    missing_minor: tuple[str, ...] = ()
    category_percent: dict[str, float] = field(default_factory=dict)
    completeness_adjustment: float = 0.0
    summary: str = ""
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConfidenceAdjustment:
    adjusted_score: float
    was_reduced: bool
    reasoning: str


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def extract_data_availability(features: SymbolFeatures) -> DataAvailability:
    """Read which inputs are present from the snapshot."""
    price = features.price
    volume = features.volume
    pattern = features.pattern
    live_flow = features.flow.source != ContextTier.DEFAULT

    def has_timeframe(name: str) -> bool:
        data = features.timeframe(name)
        return data is not None and data.price_current > 0

    return DataAvailability(
        price=price.current > 0,
        price_change=price.prev_close > 0,
        volume=volume.current > 0,
        volume_avg=volume.avg > 0,
        relative_volume=volume.avg > 0,
        vwap=features.vwap.value > 0,
        vwap_distance=features.vwap.value > 0,
        rsi=math.isfinite(features.rsi),
        ema=features.ema.ema21 > 0,
        atr=features.atr > 0,
        mtf_1m=has_timeframe("1m"),
        mtf_5m=has_timeframe("5m"),
        mtf_15m=has_timeframe("15m"),
        mtf_60m=has_timeframe("60m"),
        flow=live_flow,
        flow_score=live_flow,
        flow_bias=live_flow,
        orb=pattern.orb_high > 0 and pattern.orb_low > 0,
        prior_day_levels=pattern.prior_day_high is not None and pattern.prior_day_low is not None,
        swing_levels=len(features.recent_bars) >= MIN_SWING_BARS,
        vix_level=pattern.vix_level is not None,
        market_regime=True,
        session=True,
    )


def calculate_data_confidence(
    availability: DataAvailability,
    weights: Optional[dict[str, DataWeight]] = None
) -> ConfidenceResult:
    """
    Confidence in a snapshot from the inputs it carries.

    Args:
        availability: Presence flag per input
        weights: Weight, criticality and category per input

    Returns:
        ConfidenceResult with completeness, penalties and a 0-1 multiplier
    """
    weights = weights or DEFAULT_DATA_WEIGHTS
    total = 0.0
    available = 0.0
    missing_critical = []
    missing_important = []
    missing_minor = []
    categories: dict[str, list[float]] = {}

    for item in fields(availability):
        name = item.name
        config = weights[name]
        totals = categories.setdefault(config.category, [0.0, 0.0])
        total += config.weight
        totals[1] += config.weight

        if getattr(availability, name):
            available += config.weight
            totals[0] += config.weight
        elif config.critical:
            missing_critical.append(name)
        elif config.weight >= 5:
            missing_important.append(name)
        else:
            missing_minor.append(name)

    completeness = _round_half_up(available / total * 100) if total > 0 else 0.0
    warnings = []

    base_confidence = 100.0
    if missing_critical:
        base_confidence = 100.0 - len(missing_critical) * CRITICAL_PENALTY
        warnings.append(f"Missing critical data: {', '.join(missing_critical)}")

    if completeness < 50:
        adjustment = -20.0
        warnings.append("Data completeness below 50% - signal reliability significantly reduced")
    elif completeness < 70:
        adjustment = -10.0
        warnings.append("Data completeness below 70% - signal may be unreliable")
    elif completeness >= 90:
        adjustment = 5.0
    else:
        adjustment = 0.0

    adjusted = max(0.0, min(100.0, base_confidence * completeness / 100 + adjustment))

    summary = f"Data: {completeness:.0f}% complete"
    if missing_critical:
        summary += f" ({len(missing_critical)} critical missing)"
    summary += f" -> {adjusted:.0f}% confidence"

    return ConfidenceResult(
        completeness=completeness,
        base_confidence=base_confidence,
        adjusted_confidence=adjusted,
        multiplier=adjusted / 100,
        total_weight=total,
        available_weight=available,
        missing_critical=tuple(missing_critical),
        missing_important=tuple(missing_important),
        missing_minor=tuple(missing_minor),
        category_percent={
            category: _round_half_up(have / of * 100) if of > 0 else 0.0
            for category, (have, of) in categories.items()
        },
        completeness_adjustment=adjustment,
        summary=summary,
        warnings=tuple(warnings),
    )


def calculate_snapshot_confidence(features: SymbolFeatures) -> ConfidenceResult:
    """Confidence for a snapshot, with relaxed weights outside regular hours."""
    weights = DEFAULT_DATA_WEIGHTS if features.session.is_regular_hours else WEEKEND_DATA_WEIGHTS
    return calculate_data_confidence(extract_data_availability(features), weights)


def apply_confidence_to_score(raw_score: float, confidence: ConfidenceResult) -> ConfidenceAdjustment:
    """Scale a 0-100 score by the confidence multiplier, rounded to a whole point."""
    adjusted = _round_half_up(raw_score * confidence.multiplier)
    if adjusted < raw_score:
        reasoning = (
            f"Score reduced from {raw_score:.0f} to {adjusted:.0f} "
            f"({confidence.completeness:.0f}% data available"
        )
        if confidence.missing_critical:
            reasoning += f", missing critical: {', '.join(confidence.missing_critical)}"
        reasoning += ")"
        return ConfidenceAdjustment(adjusted, True, reasoning)

    return ConfidenceAdjustment(
        adjusted,
        False,
        f"Score maintained at {adjusted:.0f} ({confidence.completeness:.0f}% data available)",
    )


def should_filter_low_confidence(confidence: ConfidenceResult, min_confidence: float = 40.0) -> Optional[str]:
    """Filter message when confidence is under the minimum, else None."""
    if confidence.adjusted_confidence < min_confidence:
        return (
            f"Confidence too low: {confidence.adjusted_confidence:.0f}% < {min_confidence:.0f}% minimum. "
            f"{confidence.summary}"
        )
    return None


def confidence_level(confidence: float) -> str:
    if confidence >= 80:
        return "high"
    if confidence >= 60:
        return "medium"
    if confidence >= 40:
        return "low"
    return "very_low"
