"""Structure-level detection from bar history"""

from .levels import (
    ConfluenceZone,
    detect_all_structure_levels,
    detect_fair_value_gaps,
    detect_liquidity_pools,
    detect_order_blocks,
    detect_structure_breaks,
    detect_swing_highs,
    detect_swing_lows,
    filter_nearby_levels,
    find_confluence_zones,
    structure_to_key_levels,
)

__all__ = [
    "ConfluenceZone",
    "detect_all_structure_levels",
    "detect_fair_value_gaps",
    "detect_liquidity_pools",
    "detect_order_blocks",
    "detect_structure_breaks",
    "detect_swing_highs",
    "detect_swing_lows",
    "filter_nearby_levels",
    "find_confluence_zones",
    "structure_to_key_levels",
]
