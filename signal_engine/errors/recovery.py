"""
How a failed step should be handled.

These classes describe recovery behaviour independently of where the error
came from. A provider failure degrades the scan rather than ending it.
"""

from typing import Optional


class GracefulDegradationError(Exception):
    """The scan can continue with a weaker input in place of the failed one."""

    def __init__(self, message: str, degraded_functionality: Optional[str] = None,
                 fallback_strategy: Optional[str] = None, **kwargs):
        super().__init__(message)
        self.degraded_functionality = degraded_functionality
        self.fallback_strategy = fallback_strategy
        self.allows_degradation = True


class ContextProviderError(GracefulDegradationError):
    """
    A live flow, gamma or options provider failed.

    Resolution falls through to the historical tier, then to defaults.
    """

    def __init__(self, message: str, provider: Optional[str] = None,
                 symbol: Optional[str] = None, **kwargs):
        kwargs.setdefault("fallback_strategy", "historical")
        super().__init__(message, **kwargs)
        self.provider = provider
        self.symbol = symbol
