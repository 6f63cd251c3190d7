"""Pytest configuration and shared fixtures."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from signal_engine.data.models import Bar, OptionsOpenInterest
from signal_engine.models.enums import Regime
from signal_engine.models.features import (
    MovingAverages,
    PatternFeatures,
    PriceFeatures,
    SessionFeatures,
    SymbolFeatures,
    VolumeFeatures,
    VWAPFeatures,
)

# Friday 2024-03-15 15:30 UTC, one hour after the default regular open
SCAN_TIME = datetime(2024, 3, 15, 15, 30, tzinfo=timezone.utc)


def build_bar(
    index: int,
    open: float,
    high: float,
    low: float,
    close: float,
    volume: float = 1000.0,
    start: datetime = SCAN_TIME,
    minutes: int = 1
) -> Bar:
    return Bar(
        time=start + timedelta(minutes=index * minutes),
        open=open,
        high=high,
        low=low,
        close=close,
        volume=volume,
    )


def build_series(closes: list[float], spread: float = 0.5, volume: float = 1000.0,
                 start: datetime = SCAN_TIME) -> list[Bar]:
    """Bars opening at the previous close with a symmetric high/low spread."""
    bars = []
    previous = closes[0]
    for i, close in enumerate(closes):
        bars.append(build_bar(
            i,
            open=previous,
            high=max(previous, close) + spread,
            low=min(previous, close) - spread,
            close=close,
            volume=volume,
            start=start,
        ))
        previous = close
    return bars


def build_features(**overrides: Any) -> SymbolFeatures:
    """
    Neutral SPY snapshot: price 100, RTH an hour after the open.

    Nested groups are replaced wholesale by passing e.g. price=PriceFeatures(...);
    common scalars have shortcuts (current, prev_close, rsi, atr, rvol, vwap).
    """
    current = overrides.pop("current", 100.0)
    prev_close = overrides.pop("prev_close", 99.5)
    rvol = overrides.pop("rvol", 1.0)
    vwap = overrides.pop("vwap", 99.8)
    is_regular_hours = overrides.pop("is_regular_hours", True)
    minutes_since_open = overrides.pop("minutes_since_open", 60)

    features = SymbolFeatures(
        symbol="SPY",
        time=SCAN_TIME,
        price=PriceFeatures(current=current, open=99.6, high=current + 0.5, low=99.2, prev_close=prev_close),
        volume=VolumeFeatures(current=1000.0 * rvol, avg=1000.0, relative_to_avg=rvol),
        ema=MovingAverages(ema8=99.9, ema21=99.7, ema50=99.0, ema200=95.0),
        rsi=50.0,
        atr=1.2,
        vwap=VWAPFeatures(value=vwap, distance_pct=(current - vwap) / vwap * 100 if vwap else 0.0),
        session=SessionFeatures(is_regular_hours=is_regular_hours, minutes_since_open=minutes_since_open),
        pattern=PatternFeatures(),
        regime=Regime.RANGING,
    )
    return replace(features, **overrides)


@pytest.fixture
def bar_factory() -> Callable[..., Bar]:
    """Factory for single bars indexed one minute apart."""
    return build_bar


@pytest.fixture
def series_factory() -> Callable[..., list[Bar]]:
    """Factory for bar series following a list of closes."""
    return build_series


@pytest.fixture
def features_factory() -> Callable[..., SymbolFeatures]:
    """Factory for feature snapshots with keyword overrides."""
    return build_features


@pytest.fixture
def uptrend_bars() -> list[Bar]:
    """Zig-zag uptrend with higher highs and higher lows."""
    closes = []
    price = 100.0
    for i in range(40):
        price += 0.6 if i % 4 != 3 else -0.8
        closes.append(round(price, 2))
    return build_series(closes)


@pytest.fixture
def open_interest_rows() -> list[OptionsOpenInterest]:
    """Chain around spot 580 with a put-heavy downside and call-heavy upside."""
    rows = []
    for strike in range(560, 601, 5):
        below = strike < 580
        rows.append(OptionsOpenInterest(
            strike=float(strike),
            call_oi=2000.0 if below else 6000.0,
            put_oi=6000.0 if below else 2000.0,
            call_gamma=0.02,
            put_gamma=0.02,
            dte=3,
        ))
    return rows
