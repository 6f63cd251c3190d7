"""
Explicit override merging for frozen parameter groups.

Every parameter group is a frozen dataclass; callers never mutate defaults.
Overrides are applied by building a new instance, and trade-class specific
stop limits live in a plain lookup table.
"""

from dataclasses import fields, replace
from typing import Any, Optional, TypeVar, Union

from signal_engine.config.defaults import StopParams
from signal_engine.models.enums import TradeClass

P = TypeVar("P")


TRADE_CLASS_STOP_OVERRIDES: dict[TradeClass, dict[str, float]] = {
    TradeClass.SCALP: {
        "max_stop_percent": 2.0,
        "min_stop_percent": 0.25,
        "buffer_atr_multiplier": 0.05,
        "fallback_atr_multiplier": 0.75,
    },
    TradeClass.DAY: {
        "max_stop_percent": 3.5,
        "min_stop_percent": 0.5,
        "buffer_atr_multiplier": 0.1,
        "fallback_atr_multiplier": 1.0,
    },
    TradeClass.SWING: {
        "max_stop_percent": 8.0,
        "min_stop_percent": 1.0,
        "buffer_atr_multiplier": 0.15,
        "fallback_atr_multiplier": 1.5,
    },
    TradeClass.LEAP: {
        "max_stop_percent": 15.0,
        "min_stop_percent": 2.0,
        "buffer_atr_multiplier": 0.2,
        "fallback_atr_multiplier": 2.0,
    },
}


def apply_overrides(params: P, overrides: Optional[dict[str, Any]] = None) -> P:
    """
    Apply partial overrides over a frozen parameter group.

    Args:
        params: Frozen dataclass instance holding the defaults
        overrides: Field name to value mapping, None values are ignored

    Returns:
        New instance with overrides applied (the original is untouched)

    Raises:
        ValueError: If an override names a field the group does not have
    """
    if not overrides:
        return params

    known = {f.name for f in fields(params)}  # type: ignore[arg-type]
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown parameters for {type(params).__name__}: {', '.join(unknown)}")

    changes = {key: value for key, value in overrides.items() if value is not None}
    return replace(params, **changes)  # type: ignore[type-var]


def resolve_trade_class(trade_class: Union[TradeClass, str]) -> TradeClass:
    """Normalize a trade class name, defaulting unknown names to DAY."""
    if isinstance(trade_class, TradeClass):
        return trade_class
    try:
        return TradeClass(str(trade_class).upper())
    except ValueError:
        return TradeClass.DAY


def stop_params_for(
    trade_class: Union[TradeClass, str],
    base: Optional[StopParams] = None,
    overrides: Optional[dict[str, Any]] = None
) -> StopParams:
    """
    Resolve stop parameters for a trade class.

    Precedence (lowest to highest): base defaults, trade-class table row,
    caller overrides.
    """
    params = base if base is not None else StopParams()
    params = apply_overrides(params, TRADE_CLASS_STOP_OVERRIDES[resolve_trade_class(trade_class)])
    return apply_overrides(params, overrides)
