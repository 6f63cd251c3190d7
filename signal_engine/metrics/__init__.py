"""Technical indicator calculations used by feature synthesis"""

from .atr import calculate_atr, calculate_natr, calculate_true_range
from .candle_structure import analyze_candle_structure, is_inside_bar
from .momentum import calculate_rsi
from .moving_average import calculate_ema, calculate_ema_series, calculate_sma
from .regime import classify_regime
from .volume import relative_volume, trailing_average_volume
from .vwap import calculate_vwap, session_bars, vwap_distance_pct

__all__ = [
    "calculate_atr",
    "calculate_natr",
    "calculate_true_range",
    "analyze_candle_structure",
    "is_inside_bar",
    "calculate_rsi",
    "calculate_ema",
    "calculate_ema_series",
    "calculate_sma",
    "classify_regime",
    "relative_volume",
    "trailing_average_volume",
    "calculate_vwap",
    "session_bars",
    "vwap_distance_pct",
]
