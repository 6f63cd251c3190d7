"""Feature synthesis: snapshots, flow aggregation and context resolution"""

from .builder import FeatureBuilder
from .context import (
    FlowContextProvider,
    GammaContextProvider,
    LiveContext,
    OptionsDataProvider,
    ResolvedContext,
    fetch_live_contexts,
    resolve_context,
)

__all__ = [
    "FeatureBuilder",
    "FlowContextProvider",
    "GammaContextProvider",
    "LiveContext",
    "OptionsDataProvider",
    "ResolvedContext",
    "fetch_live_contexts",
    "resolve_context",
]
