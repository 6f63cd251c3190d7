"""Trading style scoring and signal deduplication"""

from .deduplication import SignalDeduplication, SignalRecord
from .styles import (
    StyleModifierResult,
    TimeOfDayWindow,
    calculate_style_modifiers,
    calculate_style_scores,
    time_of_day_window,
)

__all__ = [
    "SignalDeduplication",
    "SignalRecord",
    "StyleModifierResult",
    "TimeOfDayWindow",
    "calculate_style_modifiers",
    "calculate_style_scores",
    "time_of_day_window",
]
