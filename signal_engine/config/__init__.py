"""Configuration defaults, override merging, loading and validation."""

from .defaults import EngineConfig, get_default_config
from .loader import ConfigLoader
from .overrides import TRADE_CLASS_STOP_OVERRIDES, apply_overrides, stop_params_for
from .validation import ConfigValidator, ValidationError

__all__ = [
    "EngineConfig",
    "get_default_config",
    "ConfigLoader",
    "TRADE_CLASS_STOP_OVERRIDES",
    "apply_overrides",
    "stop_params_for",
    "ConfigValidator",
    "ValidationError",
]
