"""Normalization of reference levels into KeyLevel lists for risk placement"""

from typing import Iterable, Optional, Union

from signal_engine.models.features import SymbolFeatures
from signal_engine.models.levels import KeyLevel, KeyLevelStrength, KeyLevelType, ReferenceLevels

# (field, type, strength, label) in output order
_REFERENCE_FIELDS = (
    ("prior_day_high", KeyLevelType.PRIOR_DAY_HL, KeyLevelStrength.STRONG, "Prior Day High"),
    ("prior_day_low", KeyLevelType.PRIOR_DAY_HL, KeyLevelStrength.STRONG, "Prior Day Low"),
    ("week_high", KeyLevelType.WEEK_HL, KeyLevelStrength.STRONG, "Weekly High"),
    ("week_low", KeyLevelType.WEEK_HL, KeyLevelStrength.STRONG, "Weekly Low"),
    ("month_high", KeyLevelType.MONTH_HL, KeyLevelStrength.STRONG, "Monthly High"),
    ("month_low", KeyLevelType.MONTH_HL, KeyLevelStrength.STRONG, "Monthly Low"),
    ("orb_high", KeyLevelType.ORB, KeyLevelStrength.MODERATE, "ORB High"),
    ("orb_low", KeyLevelType.ORB, KeyLevelStrength.MODERATE, "ORB Low"),
    ("vwap", KeyLevelType.VWAP, KeyLevelStrength.MODERATE, "VWAP"),
    ("vwap_upper_band", KeyLevelType.VWAP, KeyLevelStrength.WEAK, "VWAP +1σ"),
    ("vwap_lower_band", KeyLevelType.VWAP, KeyLevelStrength.WEAK, "VWAP -1σ"),
    ("bollinger_upper", KeyLevelType.BOLLINGER, KeyLevelStrength.WEAK, "BB Upper"),
    ("bollinger_lower", KeyLevelType.BOLLINGER, KeyLevelStrength.WEAK, "BB Lower"),
    ("premarket_high", KeyLevelType.ORB, KeyLevelStrength.MODERATE, "PM High"),
    ("premarket_low", KeyLevelType.ORB, KeyLevelStrength.MODERATE, "PM Low"),
)

LevelsInput = Union[ReferenceLevels, Iterable[KeyLevel]]


def extract_key_levels(reference: ReferenceLevels) -> list[KeyLevel]:
    """
    Convert reference levels to KeyLevel entries.

    Prior day, week and month extremes are strong; ORB, premarket and VWAP
    moderate; VWAP bands and Bollinger bands weak. Missing or non-positive
    levels are skipped.
    """
    levels = []
    for field_name, level_type, strength, label in _REFERENCE_FIELDS:
        price = getattr(reference, field_name)
        if price is not None and price > 0:
            levels.append(KeyLevel(price=price, type=level_type, strength=strength, label=label))
    return levels


def normalize_levels(levels: LevelsInput) -> list[KeyLevel]:
    if isinstance(levels, ReferenceLevels):
        return extract_key_levels(levels)
    return list(levels)


def reference_levels_from_features(
    features: SymbolFeatures,
    base: Optional[ReferenceLevels] = None
) -> ReferenceLevels:
    """Reference levels carried by a snapshot, filling gaps in `base`."""
    base = base or ReferenceLevels()
    pattern = features.pattern

    def pick(existing: Optional[float], derived: Optional[float]) -> Optional[float]:
        if existing is not None and existing > 0:
            return existing
        return derived if derived else None

    return ReferenceLevels(
        prior_day_high=pick(base.prior_day_high, pattern.prior_day_high),
        prior_day_low=pick(base.prior_day_low, pattern.prior_day_low),
        week_high=base.week_high,
        week_low=base.week_low,
        month_high=base.month_high,
        month_low=base.month_low,
        orb_high=pick(base.orb_high, pattern.orb_high),
        orb_low=pick(base.orb_low, pattern.orb_low),
        premarket_high=pick(base.premarket_high, pattern.premarket_high),
        premarket_low=pick(base.premarket_low, pattern.premarket_low),
        vwap=pick(base.vwap, features.vwap.value),
        vwap_upper_band=base.vwap_upper_band,
        vwap_lower_band=base.vwap_lower_band,
        bollinger_upper=base.bollinger_upper,
        bollinger_lower=base.bollinger_lower,
    )
