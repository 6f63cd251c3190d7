"""
Level-aware stop and target placement.

Stops are placed just beyond the best nearby support (longs) or resistance
(shorts) instead of at a fixed ATR multiple. Candidate levels are ranked by
proximity, strength and how often they have been tested. When no level is
within range the stop falls back to an ATR multiple; placement never raises.
"""

from typing import Any, Optional, Union

import structlog

from signal_engine.config.defaults import StopParams
from signal_engine.config.overrides import stop_params_for
from signal_engine.models.enums import Direction, TradeClass
from signal_engine.models.levels import KeyLevel, KeyLevelStrength, KeyLevelType
from signal_engine.models.risk import (
    LevelAwareStopResult,
    LevelAwareTargets,
    StopAlternative,
    StopValidation,
    TargetLevel,
)

from .key_levels import LevelsInput, normalize_levels

logger = structlog.get_logger(__name__)

HIGH_CONFIDENCE_MAX_PERCENT = 3.0
MEDIUM_CONFIDENCE_MAX_PERCENT = 2.0
VALIDATION_MIN_PERCENT = 0.25
VALIDATION_MAX_PERCENT = 10.0


def _is_long(direction: Union[Direction, str]) -> bool:
    return str(getattr(direction, "value", direction)).upper() != Direction.SHORT.value


def _distance_percent(entry: float, price: float) -> float:
    """Distance of `price` from entry as a percent of entry, 0 when entry <= 0."""
    if entry <= 0:
        return 0.0
    return abs(entry - price) / entry * 100


def _iv_adjustment(iv_percentile: Optional[float]) -> tuple[float, str]:
    if iv_percentile is None:
        return 1.0, ""
    if iv_percentile > 80:
        return 1.2, " (High IV: widened 20%)"
    if iv_percentile < 20:
        return 0.9, " (Low IV: tightened 10%)"
    return 1.0, ""


def score_level(level: KeyLevel, distance_percent: float, params: StopParams) -> float:
    """Weighted proximity, strength and recency score of a candidate level."""
    proximity = (1 - distance_percent / params.max_stop_percent) * 100
    strength = level.strength.tier * 33.33
    recency = min(100, (level.touch_count or 1) * 20)
    return (
        proximity * params.proximity_weight
        + strength * params.strength_weight
        + recency * params.recency_weight
    )


def _fallback_stop(
    entry: float,
    is_long: bool,
    atr: float,
    params: StopParams
) -> LevelAwareStopResult:
    multiplier = params.fallback_atr_multiplier
    # Without a usable ATR the minimum distance keeps the stop on the loss side
    distance = atr * multiplier if atr > 0 else entry * params.min_stop_percent / 100
    stop = entry - distance if is_long else entry + distance

    return LevelAwareStopResult(
        recommended_stop=stop,
        stop_distance=distance,
        stop_distance_percent=_distance_percent(entry, stop),
        level_price=stop,
        level_type=KeyLevelType.ATR,
        level_label=f"{multiplier:g}x ATR",
        level_strength=KeyLevelStrength.WEAK,
        confidence="low",
        reasoning=f"No suitable key levels found. Using {multiplier:g}x ATR stop.",
        warnings=("No key levels found within range, using ATR-based stop",),
    )


def calculate_level_aware_stop(
    entry: float,
    direction: Union[Direction, str],
    levels: LevelsInput,
    atr: float,
    trade_class: Union[TradeClass, str] = TradeClass.DAY,
    params: Optional[StopParams] = None,
    iv_percentile: Optional[float] = None,
    overrides: Optional[dict[str, Any]] = None
) -> LevelAwareStopResult:
    """
    Place a stop beyond the best key level on the loss side of entry.

    Args:
        entry: Entry price
        direction: LONG or SHORT
        levels: KeyLevel list or ReferenceLevels
        atr: Current ATR, used for the buffer and the fallback
        trade_class: Trade class selecting the stop distance limits
        params: Base stop parameters (trade-class table applied on top)
        iv_percentile: Implied volatility percentile widening/tightening the buffer
        overrides: Caller overrides applied last

    Returns:
        LevelAwareStopResult; ATR-based with low confidence when no level qualifies
    """
    params = stop_params_for(trade_class, base=params, overrides=overrides)
    is_long = _is_long(direction)

    candidates = []
    for level in normalize_levels(levels):
        on_loss_side = level.price < entry if is_long else level.price > entry
        if not on_loss_side:
            continue
        distance_percent = _distance_percent(entry, level.price)
        if distance_percent <= params.max_stop_percent:
            candidates.append((score_level(level, distance_percent, params), level))

    if not candidates:
        logger.debug("No key level within range, using ATR stop", entry=entry, atr=atr)
        return _fallback_stop(entry, is_long, atr, params)

    # Stable sort keeps input order among equal scores
    candidates.sort(key=lambda item: item[0], reverse=True)
    _, primary = candidates[0]

    iv_multiplier, iv_reasoning = _iv_adjustment(iv_percentile)
    buffer = atr * params.buffer_atr_multiplier * iv_multiplier
    stop = primary.price - buffer if is_long else primary.price + buffer
    distance = abs(entry - stop)
    distance_percent = _distance_percent(entry, stop)

    warnings = []
    if distance_percent < params.min_stop_percent:
        warnings.append(f"Stop too tight ({distance_percent:.2f}%), consider wider placement")

    alternatives = []
    for score, level in candidates[1:4]:
        alt_stop = level.price - buffer if is_long else level.price + buffer
        alternatives.append(StopAlternative(
            price=alt_stop,
            level_price=level.price,
            level_label=level.label,
            level_type=level.type,
            strength=level.strength,
            score=score,
            distance_percent=_distance_percent(entry, alt_stop),
            reasoning=f"{'Below' if is_long else 'Above'} {level.label} ({level.strength.value})",
        ))

    if primary.strength == KeyLevelStrength.STRONG and distance_percent <= HIGH_CONFIDENCE_MAX_PERCENT:
        confidence = "high"
    elif primary.strength != KeyLevelStrength.WEAK or distance_percent <= MEDIUM_CONFIDENCE_MAX_PERCENT:
        confidence = "medium"
    else:
        confidence = "low"

    side = "below" if is_long else "above"
    return LevelAwareStopResult(
        recommended_stop=stop,
        stop_distance=distance,
        stop_distance_percent=distance_percent,
        level_price=primary.price,
        level_type=primary.type,
        level_label=primary.label,
        level_strength=primary.strength,
        confidence=confidence,
        reasoning=(
            f"Stop placed {buffer:.2f} {side} {primary.label} ({primary.strength.value}) "
            f"at {primary.price:.2f}{iv_reasoning}"
        ),
        alternatives=tuple(alternatives),
        warnings=tuple(warnings),
    )


def calculate_level_aware_targets(
    entry: float,
    direction: Union[Direction, str],
    levels: LevelsInput,
    stop_distance: float
) -> LevelAwareTargets:
    """
    Targets at key levels near 1R, 2R and 3R, falling back to the R multiple.

    Args:
        entry: Entry price
        direction: LONG or SHORT
        levels: KeyLevel list or ReferenceLevels
        stop_distance: Absolute risk per share (1R)

    Returns:
        LevelAwareTargets with reasoning for each target
    """
    is_long = _is_long(direction)
    sign = 1 if is_long else -1

    profit_side = [
        level for level in normalize_levels(levels)
        if (level.price > entry if is_long else level.price < entry)
    ]
    profit_side.sort(key=lambda level: abs(level.price - entry))

    def r_multiple(level: KeyLevel) -> float:
        return abs(level.price - entry) / stop_distance if stop_distance > 0 else 0.0

    def near(target_r: float, tolerance: float) -> Optional[KeyLevel]:
        if stop_distance <= 0:
            return None
        return next(
            (level for level in profit_side if abs(r_multiple(level) - target_r) <= tolerance),
            None,
        )

    reasoning = []

    t1_level = near(1.0, 0.5)
    if t1_level is not None:
        t1 = TargetLevel(t1_level.price, r_multiple(t1_level), t1_level.label, t1_level.type)
        reasoning.append(f"T1 at {t1_level.label} ({t1.r_multiple:.1f}R)")
    elif profit_side:
        first = profit_side[0]
        t1 = TargetLevel(first.price, r_multiple(first), first.label, first.type)
        reasoning.append(f"T1 at first level: {first.label}")
    else:
        t1 = TargetLevel(entry + sign * stop_distance, 1.0, "1R")
        reasoning.append("T1 at 1R (no levels found)")

    targets = [t1]
    for name, target_r, tolerance in (("T2", 2.0, 0.75), ("T3", 3.0, 1.0)):
        level = near(target_r, tolerance)
        if level is not None:
            target = TargetLevel(level.price, r_multiple(level), level.label, level.type)
            reasoning.append(f"{name} at {level.label} ({target.r_multiple:.1f}R)")
        else:
            target = TargetLevel(entry + sign * stop_distance * target_r, target_r, f"{target_r:g}R")
            reasoning.append(f"{name} at {target_r:g}R (no suitable level)")
        targets.append(target)

    return LevelAwareTargets(t1=targets[0], t2=targets[1], t3=targets[2], reasoning=tuple(reasoning))


def validate_stop_placement(
    stop: float,
    entry: float,
    direction: Union[Direction, str],
    levels: LevelsInput,
    atr: float
) -> StopValidation:
    """Check a proposed stop for side, distance and placement relative to levels."""
    is_long = _is_long(direction)
    key_levels = normalize_levels(levels)
    issues = []
    suggestions = []

    if is_long and stop >= entry:
        issues.append("Stop must be below entry for long trades")
    if not is_long and stop <= entry:
        issues.append("Stop must be above entry for short trades")

    distance_percent = _distance_percent(entry, stop)
    if distance_percent < VALIDATION_MIN_PERCENT:
        issues.append(f"Stop too tight ({distance_percent:.2f}%)")
        suggestions.append("Consider widening stop to avoid noise stop-outs")
    if distance_percent > VALIDATION_MAX_PERCENT:
        issues.append(f"Stop too wide ({distance_percent:.2f}%)")
        suggestions.append("Consider tighter stop or different trade type")

    if key_levels and not any(abs(level.price - stop) < atr * 0.5 for level in key_levels):
        suggestions.append("Stop is not near any key level - consider adjusting to a technical level")

    if is_long:
        crosses = any(stop > level.price and level.price < entry for level in key_levels)
    else:
        crosses = any(stop < level.price and level.price > entry for level in key_levels)
    if crosses:
        issues.append("Stop is above a support level (long) or below resistance (short)")
        suggestions.append("Place stop BEYOND the key level, not above it")

    return StopValidation(is_valid=not issues, issues=tuple(issues), suggestions=tuple(suggestions))
