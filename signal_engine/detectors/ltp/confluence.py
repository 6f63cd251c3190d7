"""
Level confluence for the Levels-Trend-Patience setups.

VWAP is the King level. Any other level (moving averages, opening range,
premarket, prior day) stacked within the proximity band of VWAP is a Queen.
A King with at least one Queen is the highest-conviction level a setup can
trade from.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from signal_engine.config.defaults import ConfluenceParams
from signal_engine.models.features import SymbolFeatures


class LTPLevelType(str, Enum):
    VWAP = "VWAP"
    EMA_8 = "EMA_8"
    EMA_21 = "EMA_21"
    SMA_200 = "SMA_200"
    ORB_HIGH = "ORB_HIGH"
    ORB_LOW = "ORB_LOW"
    PREMARKET_HIGH = "PREMARKET_HIGH"
    PREMARKET_LOW = "PREMARKET_LOW"
    PRIOR_DAY_HIGH = "PRIOR_DAY_HIGH"
    PRIOR_DAY_LOW = "PRIOR_DAY_LOW"
    PRIOR_DAY_CLOSE = "PRIOR_DAY_CLOSE"
    HOURLY_LEVEL = "HOURLY_LEVEL"
    FIB_236 = "FIB_236"
    FIB_382 = "FIB_382"
    FIB_500 = "FIB_500"
    FIB_618 = "FIB_618"
    REACTION_LEVEL = "REACTION_LEVEL"
    OPEN_PRICE = "OPEN_PRICE"


LEVEL_WEIGHTS = {
    LTPLevelType.VWAP: 1.5,
    LTPLevelType.EMA_8: 1.2,
    LTPLevelType.EMA_21: 1.2,
    LTPLevelType.SMA_200: 1.3,
    LTPLevelType.ORB_HIGH: 1.1,
    LTPLevelType.ORB_LOW: 1.1,
    LTPLevelType.PREMARKET_HIGH: 1.0,
    LTPLevelType.PREMARKET_LOW: 1.0,
    LTPLevelType.PRIOR_DAY_HIGH: 1.1,
    LTPLevelType.PRIOR_DAY_LOW: 1.1,
    LTPLevelType.PRIOR_DAY_CLOSE: 0.9,
    LTPLevelType.HOURLY_LEVEL: 1.0,
    LTPLevelType.FIB_236: 0.8,
    LTPLevelType.FIB_382: 0.9,
    LTPLevelType.FIB_500: 0.9,
    LTPLevelType.FIB_618: 0.9,
    LTPLevelType.REACTION_LEVEL: 0.7,
    LTPLevelType.OPEN_PRICE: 0.8,
}

_LABELS = {
    LTPLevelType.VWAP: "VWAP",
    LTPLevelType.EMA_8: "8 EMA",
    LTPLevelType.EMA_21: "21 EMA",
    LTPLevelType.SMA_200: "200 SMA",
    LTPLevelType.ORB_HIGH: "ORB H",
    LTPLevelType.ORB_LOW: "ORB L",
    LTPLevelType.PREMARKET_HIGH: "PM H",
    LTPLevelType.PREMARKET_LOW: "PM L",
    LTPLevelType.PRIOR_DAY_HIGH: "PDH",
    LTPLevelType.PRIOR_DAY_LOW: "PDL",
    LTPLevelType.PRIOR_DAY_CLOSE: "PDC",
    LTPLevelType.HOURLY_LEVEL: "60m",
    LTPLevelType.FIB_236: "Fib 23.6",
    LTPLevelType.FIB_382: "Fib 38.2",
    LTPLevelType.FIB_500: "Fib 50",
    LTPLevelType.FIB_618: "Fib 61.8",
    LTPLevelType.REACTION_LEVEL: "React",
    LTPLevelType.OPEN_PRICE: "Open",
}

# Assumed prior reactions per level type when building from a snapshot
_REACTIONS = {
    LTPLevelType.VWAP: 3,
    LTPLevelType.EMA_8: 2,
    LTPLevelType.EMA_21: 2,
    LTPLevelType.SMA_200: 3,
    LTPLevelType.PRIOR_DAY_HIGH: 2,
    LTPLevelType.PRIOR_DAY_LOW: 2,
    LTPLevelType.FIB_236: 0,
    LTPLevelType.FIB_382: 0,
    LTPLevelType.FIB_500: 0,
    LTPLevelType.FIB_618: 0,
}


@dataclass(frozen=True)
class LTPLevel:
    type: LTPLevelType
    price: float
    label: str
    strength: float
    reaction_count: int
    distance_pct: float
    is_queen: bool = False


@dataclass(frozen=True)
class KingQueenConfluence:
    detected: bool
    king: Optional[LTPLevel]
    queens: tuple[LTPLevel, ...]
    strength: float
    proximity_pct: float


@dataclass(frozen=True)
class LevelConfluence:
    price_zone: float
    levels: tuple[LTPLevel, ...]
    combined_strength: float
    is_king_queen: bool

    @property
    def level_count(self) -> int:
        return len(self.levels)


def _distance_pct(price: float, level: float) -> float:
    if price == 0:
        return float("inf")
    return abs(price - level) / price * 100


def create_ltp_level(
    level_type: LTPLevelType,
    price: float,
    current_price: float,
    reaction_count: int = 0
) -> LTPLevel:
    """Level with strength 50, plus up to 30 for reactions, plus a type bonus."""
    strength = 50 + min(30, reaction_count * 10)
    if level_type == LTPLevelType.VWAP:
        strength += 20
    elif level_type in (LTPLevelType.EMA_8, LTPLevelType.EMA_21):
        strength += 10
    elif level_type == LTPLevelType.SMA_200:
        strength += 15
    elif level_type.value.startswith("PRIOR_DAY"):
        strength += 10

    return LTPLevel(
        type=level_type,
        price=price,
        label=f"{_LABELS[level_type]} {price:.2f}",
        strength=float(min(100, strength)),
        reaction_count=reaction_count,
        distance_pct=_distance_pct(current_price, price),
    )


def build_ltp_levels(
    features: SymbolFeatures,
    extra_levels: Optional[dict[LTPLevelType, float]] = None
) -> list[LTPLevel]:
    """
    Collect the tradeable levels carried by a snapshot.

    Args:
        features: Feature snapshot
        extra_levels: Additional levels (fibs, hourly, open) keyed by type

    Returns:
        Levels with a positive price, nearest to the current price first
    """
    pattern = features.pattern
    candidates = {
        LTPLevelType.VWAP: features.vwap.value,
        LTPLevelType.EMA_8: features.ema.ema8,
        LTPLevelType.EMA_21: features.ema.ema21,
        LTPLevelType.SMA_200: features.ema.ema200,
        LTPLevelType.ORB_HIGH: pattern.orb_high,
        LTPLevelType.ORB_LOW: pattern.orb_low,
        LTPLevelType.PREMARKET_HIGH: pattern.premarket_high,
        LTPLevelType.PREMARKET_LOW: pattern.premarket_low,
        LTPLevelType.PRIOR_DAY_HIGH: pattern.prior_day_high,
        LTPLevelType.PRIOR_DAY_LOW: pattern.prior_day_low,
    }
    candidates.update(extra_levels or {})

    price = features.price.current
    levels = [
        create_ltp_level(level_type, value, price, _REACTIONS.get(level_type, 1))
        for level_type, value in candidates.items()
        if value is not None and value > 0
    ]
    return sorted(levels, key=lambda level: level.distance_pct)


def _in_proximity(a: LTPLevel, b: LTPLevel, current_price: float, proximity_pct: float) -> bool:
    return abs(a.price - b.price) <= current_price * proximity_pct / 100


def detect_king_queen(
    levels: list[LTPLevel],
    current_price: float,
    params: Optional[ConfluenceParams] = None
) -> KingQueenConfluence:
    """VWAP plus every other level within the proximity band of it."""
    params = params or ConfluenceParams()
    king = next((level for level in levels if level.type == LTPLevelType.VWAP), None)
    if king is None:
        return KingQueenConfluence(False, None, (), 0.0, params.proximity_percent)

    queens = tuple(
        replace(level, is_queen=True)
        for level in levels
        if level.type != LTPLevelType.VWAP
        and _in_proximity(king, level, current_price, params.proximity_percent)
    )

    strength = 0.0
    if queens:
        total = king.strength * LEVEL_WEIGHTS[LTPLevelType.VWAP]
        total += sum(q.strength * LEVEL_WEIGHTS.get(q.type, 1.0) for q in queens)
        strength = min(100.0, total / (100 * (1 + len(queens))) * 100)

    return KingQueenConfluence(
        detected=len(queens) >= 1,
        king=king,
        queens=queens,
        strength=strength,
        proximity_pct=params.proximity_percent,
    )


def find_level_confluences(
    levels: list[LTPLevel],
    current_price: float,
    params: Optional[ConfluenceParams] = None
) -> list[LevelConfluence]:
    """
    Greedy stacking of levels within the proximity band.

    Each level joins at most one stack; stacks below the minimum size are
    dropped. Strongest stack first.
    """
    params = params or ConfluenceParams()
    used: set[int] = set()
    confluences = []

    for i, level in enumerate(levels):
        if i in used:
            continue
        used.add(i)
        stack = [level]
        for j, other in enumerate(levels):
            if j in used:
                continue
            if _in_proximity(level, other, current_price, params.proximity_percent):
                stack.append(other)
                used.add(j)

        if len(stack) < params.min_levels:
            continue

        combined = sum(l.strength * LEVEL_WEIGHTS.get(l.type, 1.0) for l in stack) / len(stack)
        has_vwap = any(l.type == LTPLevelType.VWAP for l in stack)
        confluences.append(LevelConfluence(
            price_zone=sum(l.price for l in stack) / len(stack),
            levels=tuple(stack),
            combined_strength=min(100.0, combined),
            is_king_queen=has_vwap and len(stack) >= 2,
        ))

    return sorted(confluences, key=lambda c: c.combined_strength, reverse=True)


def level_confluence_score(
    levels: list[LTPLevel],
    current_price: float,
    params: Optional[ConfluenceParams] = None
) -> float:
    score = 0.0
    king_queen = detect_king_queen(levels, current_price, params)
    if king_queen.detected:
        score += 40 + min(20, len(king_queen.queens) * 10)

    confluences = find_level_confluences(levels, current_price, params)
    if confluences:
        score += min(30, confluences[0].level_count * 10)

    nearby = sum(1 for level in levels if level.distance_pct < 0.5)
    score += min(10, nearby * 3)

    return min(100.0, score)


def find_nearest_levels(
    levels: list[LTPLevel],
    current_price: float
) -> tuple[Optional[LTPLevel], Optional[LTPLevel]]:
    """Nearest level strictly below (support) and strictly above (resistance)."""
    below = [level for level in levels if level.price < current_price]
    above = [level for level in levels if level.price > current_price]
    support = max(below, key=lambda level: level.price) if below else None
    resistance = min(above, key=lambda level: level.price) if above else None
    return support, resistance
