"""
Static detector registry.

The registry is an immutable tuple assembled at import time. There is no
runtime registration: callers that need a different set pass their own
tuple to the engine.
"""

from typing import Iterable, Optional

from signal_engine.config.defaults import ScannerParams
from signal_engine.models.enums import AssetClass

from .base import OpportunityDetector
from .core import (
    breakout_bearish,
    breakout_bullish,
    gamma_flip_bullish_detector,
    gamma_pinning,
    mean_reversion_long,
    mean_reversion_short,
    vwap_reversion_short,
)
from .flow import FLOW_DETECTORS
from .ltp.setups import LTP_DETECTORS


def build_detectors(params: Optional[ScannerParams] = None) -> tuple[OpportunityDetector, ...]:
    """All detectors, with time cutoffs taken from the scanner parameters."""
    params = params or ScannerParams()
    return (
        gamma_flip_bullish_detector(params.gamma_flip_cutoff_minutes),
        vwap_reversion_short,
        mean_reversion_short,
        mean_reversion_long,
        gamma_pinning,
        breakout_bullish,
        breakout_bearish,
    ) + FLOW_DETECTORS + LTP_DETECTORS


ALL_DETECTORS = build_detectors()


def detectors_for(
    asset_class: AssetClass,
    has_options: bool,
    detectors: Iterable[OpportunityDetector] = ALL_DETECTORS
) -> tuple[OpportunityDetector, ...]:
    """Detectors applicable to an asset class given options data availability."""
    return tuple(
        detector for detector in detectors
        if detector.applies_to(asset_class)
        and (has_options or not detector.requires_options_data)
    )


def get_detector(detector_type: str, detectors: Iterable[OpportunityDetector] = ALL_DETECTORS) -> Optional[OpportunityDetector]:
    return next((d for d in detectors if d.type == detector_type), None)
