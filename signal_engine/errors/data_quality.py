"""
Problems with the market data handed to the engine.

A scan that hits one of these reports ``data_quality: ...`` for the symbol
and the rest of a batch carries on. Nothing here means the engine is broken.
"""

from typing import Any, Dict, Optional


class DataQualityError(Exception):
    """Input bars, snapshots or context cannot support a scan."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class MissingDataError(DataQualityError):
    """A required input (current bar, price) was not supplied."""

    def __init__(self, message: str, data_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.data_type = data_type


class MalformedDataError(DataQualityError):
    """A bar or price is present but not usable: NaN, negative, or inverted OHLC."""

    def __init__(self, message: str, raw_data: Optional[str] = None,
                 expected_format: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_data = raw_data
        self.expected_format = expected_format


class InsufficientDataError(DataQualityError):
    """Too little history for a detector, or a snapshot with no tradable price."""

    def __init__(self, message: str, required_count: Optional[int] = None,
                 available_count: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.required_count = required_count
        self.available_count = available_count


class StaleDataError(DataQualityError):
    """
    A gamma or flow snapshot outlived its freshness window.

    ``age_minutes`` is None when the snapshot carries no computation time.
    """

    def __init__(self, message: str, age_minutes: Optional[float] = None,
                 threshold_minutes: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.age_minutes = age_minutes
        self.threshold_minutes = threshold_minutes
