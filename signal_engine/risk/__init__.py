"""Level-aware stop and target placement plus P&L accounting"""

from .accounting import (
    MetricsObserver,
    WinRateAdjustment,
    adjust_win_rate_for_costs,
    calculate_breakeven_price,
    calculate_pnl,
)
from .key_levels import LevelsInput, extract_key_levels, normalize_levels, reference_levels_from_features
from .stops import calculate_level_aware_stop, calculate_level_aware_targets, validate_stop_placement

__all__ = [
    "LevelsInput",
    "MetricsObserver",
    "WinRateAdjustment",
    "adjust_win_rate_for_costs",
    "calculate_breakeven_price",
    "calculate_pnl",
    "extract_key_levels",
    "normalize_levels",
    "reference_levels_from_features",
    "calculate_level_aware_stop",
    "calculate_level_aware_targets",
    "validate_stop_placement",
]
