"""Dealer positioning engine: gamma exposure, walls, flip and context"""

from .context import (
    GammaScoreModifier,
    analyze_gamma_context,
    ensure_fresh,
    get_gamma_score_modifier,
    options_data_from_context,
)
from .dealer_positioning import (
    calculate_gamma_exposure,
    classify_gamma_imbalance,
    determine_expected_behavior,
    find_gamma_flip_level,
    find_gamma_levels,
    find_walls,
)

__all__ = [
    "GammaScoreModifier",
    "analyze_gamma_context",
    "ensure_fresh",
    "get_gamma_score_modifier",
    "options_data_from_context",
    "calculate_gamma_exposure",
    "classify_gamma_imbalance",
    "determine_expected_behavior",
    "find_gamma_flip_level",
    "find_gamma_levels",
    "find_walls",
]
