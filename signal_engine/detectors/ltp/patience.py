"""
Patience candle detection.

A patience candle is a small-bodied consolidation bar sitting inside the
prior bar's range. It marks the pause before continuation and supplies the
entry trigger (break of its high or low) and the stop (its opposite extreme).
"""

from dataclasses import dataclass
from typing import Optional

from signal_engine.config.defaults import PatienceParams
from signal_engine.data.models import Bar
from signal_engine.metrics.candle_structure import (
    analyze_candle_structure,
    is_contained,
    is_inside_bar,
)

TRIGGER_OFFSET = 0.01


@dataclass(frozen=True)
class PatienceCandle:
    """Result of a patience candle check on the latest bar."""
    detected: bool
    quality: str = "Avoid"                  # A+ | A | B | Avoid
    body_ratio: float = 0.0                 # Body vs ATR
    is_inside_bar: bool = False
    contained_bars: int = 0
    volume_decreasing: bool = False
    entry_trigger_long: float = 0.0
    entry_trigger_short: float = 0.0
    stop_long: float = 0.0
    stop_short: float = 0.0
    bar_index: int = -1

    @property
    def score(self) -> float:
        return patience_score(self)


NOT_DETECTED = PatienceCandle(detected=False)


def _grade(points: int) -> str:
    if points >= 80:
        return "A+"
    if points >= 60:
        return "A"
    if points >= 40:
        return "B"
    return "Avoid"


def detect_patience_candle(
    bars: list[Bar],
    atr: float,
    params: Optional[PatienceParams] = None
) -> PatienceCandle:
    """
    Check whether the last bar is a patience candle.

    Args:
        bars: Chronological bars, the last one is evaluated
        atr: Current ATR used to normalise the body
        params: Patience parameters

    Returns:
        PatienceCandle; NOT_DETECTED with fewer than 3 bars or ATR <= 0
    """
    params = params or PatienceParams()
    if len(bars) < 3 or atr <= 0:
        return NOT_DETECTED

    current = bars[-1]
    previous = bars[-2]
    structure = analyze_candle_structure(current)

    body_ratio = structure.body / atr
    if body_ratio > params.max_body_ratio:
        return NOT_DETECTED

    prev_body = abs(previous.close - previous.open)
    if prev_body > 0 and structure.body / prev_body > params.max_body_vs_previous:
        return NOT_DETECTED

    inside = is_inside_bar(current, previous)
    if params.require_inside_bar and not inside:
        return NOT_DETECTED

    # Consecutive bars, newest first, held within the previous bar's range
    contained = 0
    for bar in reversed(bars[-params.max_consecutive:]):
        if not is_contained(bar, previous):
            break
        contained += 1

    volume_decreasing = False
    if len(bars) >= 4:
        avg_volume = sum(bar.volume for bar in bars[-4:-1]) / 3
        volume_decreasing = current.volume < avg_volume * 0.8

    points = 0
    if inside:
        points += 30
    if body_ratio < 0.2:
        points += 25
    elif body_ratio < 0.3:
        points += 20
    elif body_ratio < 0.4:
        points += 15
    else:
        points += 5
    if contained >= 3:
        points += 25
    elif contained >= 2:
        points += 15
    elif contained >= 1:
        points += 10
    if volume_decreasing:
        points += 20

    return PatienceCandle(
        detected=True,
        quality=_grade(points),
        body_ratio=body_ratio,
        is_inside_bar=inside,
        contained_bars=contained,
        volume_decreasing=volume_decreasing,
        entry_trigger_long=current.high + TRIGGER_OFFSET,
        entry_trigger_short=current.low - TRIGGER_OFFSET,
        stop_long=current.low,
        stop_short=current.high,
        bar_index=len(bars) - 1,
    )


def patience_score(candle: PatienceCandle) -> float:
    """0-100 score used by the setup detectors."""
    if not candle.detected:
        return 0.0

    score = {"A+": 85.0, "A": 70.0, "B": 50.0}.get(candle.quality, 0.0)
    if candle.is_inside_bar:
        score += 10
    if candle.contained_bars >= 2:
        score += 5
    if candle.body_ratio < 0.2:
        score += 5
    return min(100.0, score)


def find_best_patience_candle(
    bars: list[Bar],
    atr: float,
    params: Optional[PatienceParams] = None,
    lookback: int = 5
) -> PatienceCandle:
    """Highest scoring patience candle among the last `lookback` bars."""
    best = NOT_DETECTED
    for end in range(len(bars), max(len(bars) - lookback, 2), -1):
        candle = detect_patience_candle(bars[:end], atr, params)
        if candle.detected and candle.score > best.score:
            best = candle
    return best
