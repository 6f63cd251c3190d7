"""
Failures inside the engine's own calculations.

Raised when valid-looking input still breaks an indicator or a detector.
The engine reports ``system_failure: ...`` and logs at error level since
these point at a bug rather than at bad market data.
"""

from typing import Any, Dict, Optional


class SystemFailureError(Exception):
    """An engine component failed on input it should have handled."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class MetricsCalculationError(SystemFailureError):
    """An indicator (EMA, RSI, ATR) blew up during feature synthesis."""

    def __init__(self, message: str, metric_name: Optional[str] = None,
                 calculation_input: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.metric_name = metric_name
        self.calculation_input = calculation_input


class DetectorEvaluationError(SystemFailureError):
    """
    A detector gate or score factor raised.

    ``factor_name`` is None when the gate itself failed. The engine skips
    the detector and keeps evaluating the others.
    """

    def __init__(self, message: str, detector_type: Optional[str] = None,
                 factor_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.detector_type = detector_type
        self.factor_name = factor_name
