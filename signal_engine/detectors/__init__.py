"""Opportunity detector framework and the static detector registry"""

from .base import (
    OpportunityDetector,
    ScoreFactor,
    calculate_composite_score,
    create_detector,
    get_asset_class,
    should_run_detector,
)
from .registry import ALL_DETECTORS, build_detectors, detectors_for, get_detector

__all__ = [
    "OpportunityDetector",
    "ScoreFactor",
    "calculate_composite_score",
    "create_detector",
    "get_asset_class",
    "should_run_detector",
    "ALL_DETECTORS",
    "build_detectors",
    "detectors_for",
    "get_detector",
]
