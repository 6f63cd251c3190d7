"""
Canonical data models for market data consumed by the engine.

This module defines immutable data structures for bars, options flow prints
and options open interest as handed over by external providers.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Bar:
    """OHLCV bar with UTC timestamp."""
    time: datetime      # UTC bar open time
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0


class FlowSide(str, Enum):
    """Directional read of an options print."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


class FlowClassification(str, Enum):
    """Execution style of an options print."""
    SWEEP = "SWEEP"
    BLOCK = "BLOCK"
    SPLIT = "SPLIT"
    REGULAR = "REGULAR"


@dataclass(frozen=True)
class OptionsFlowRecord:
    """Single historical options flow print."""
    time: datetime
    side: FlowSide
    classification: FlowClassification
    premium: float
    size: int = 0


@dataclass(frozen=True)
class OptionsOpenInterest:
    """Open interest and per-contract gamma for one strike and expiration."""
    strike: float
    call_oi: float
    put_oi: float
    call_gamma: float
    put_gamma: float
    expiration: Optional[date] = None
    dte: int = 0


@dataclass(frozen=True)
class OptionsChainData:
    """Options-derived inputs consumed by options-aware detectors."""
    max_gamma_strike: Optional[float] = None
    dealer_net_gamma: Optional[float] = None
    gamma_flip_level: Optional[float] = None
    minutes_to_expiry: Optional[float] = None
    is_0dte: bool = False
    call_put_ratio: Optional[float] = None
    total_open_interest: Optional[float] = None
    max_pain_strike: Optional[float] = None
