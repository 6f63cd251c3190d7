"""
Error classification system for the signal engine.

This module provides a structured exception hierarchy for the kinds of errors
encountered while synthesizing features, resolving context and scanning.
"""

from .data_quality import (
    DataQualityError,
    MissingDataError,
    MalformedDataError,
    InsufficientDataError,
    StaleDataError,
)
from .system_failures import (
    SystemFailureError,
    MetricsCalculationError,
    DetectorEvaluationError,
)
from .recovery import (
    GracefulDegradationError,
    ContextProviderError,
)

__all__ = [
    # Data Quality Errors
    "DataQualityError",
    "MissingDataError",
    "MalformedDataError",
    "InsufficientDataError",
    "StaleDataError",
    # System Failures
    "SystemFailureError",
    "MetricsCalculationError",
    "DetectorEvaluationError",
    # Recovery Categories
    "GracefulDegradationError",
    "ContextProviderError",
]
