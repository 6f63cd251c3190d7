"""Levels-Trend-Patience setups and their level, trend and patience helpers"""

from .confluence import (
    LTPLevel,
    LTPLevelType,
    build_ltp_levels,
    detect_king_queen,
    find_level_confluences,
    find_nearest_levels,
    level_confluence_score,
)
from .patience import PatienceCandle, detect_patience_candle, find_best_patience_candle, patience_score
from .trend import LTPTrend, TrendDirection, detect_ltp_trend, is_trend_tradeable, trend_score

__all__ = [
    "LTPLevel",
    "LTPLevelType",
    "build_ltp_levels",
    "detect_king_queen",
    "find_level_confluences",
    "find_nearest_levels",
    "level_confluence_score",
    "PatienceCandle",
    "detect_patience_candle",
    "find_best_patience_candle",
    "patience_score",
    "LTPTrend",
    "TrendDirection",
    "detect_ltp_trend",
    "is_trend_tradeable",
    "trend_score",
]
