#!/usr/bin/env python3
"""
Basic Usage Example - Composite Signal Engine

This script demonstrates the basic usage of the signal engine with simulated
market data. It shows how to:
- Build a point-in-time feature snapshot from bars
- Analyze dealer gamma positioning from an open interest pull
- Scan symbols with the detector registry
- Place level-aware stops and estimate trade costs

Run: python examples/basic_usage.py
"""

from datetime import datetime, timedelta, timezone
from typing import List

from signal_engine.data.models import Bar, OptionsOpenInterest
from signal_engine.engine import CompositeSignalEngine, ScanRequest
from signal_engine.features import FeatureBuilder, LiveContext
from signal_engine.gamma import analyze_gamma_context
from signal_engine.logging import configure_logging
from signal_engine.models.enums import Direction, TradeClass
from signal_engine.models.signals import ScanResult
from signal_engine.risk import (
    calculate_level_aware_stop,
    calculate_pnl,
    extract_key_levels,
    reference_levels_from_features,
)
from signal_engine.signals import SignalDeduplication
from signal_engine.structure import detect_all_structure_levels, structure_to_key_levels

SESSION_OPEN = datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


def create_session_bars(start_price: float, count: int = 90) -> List[Bar]:
    """Create a zig-zag uptrend of one minute bars from the open."""
    bars = []
    price = start_price
    for i in range(count):
        step = 0.35 if i % 5 != 4 else -0.6
        open_price = price
        price = round(price + step, 2)
        bars.append(Bar(
            time=SESSION_OPEN + timedelta(minutes=i),
            open=open_price,
            high=max(open_price, price) + 0.15,
            low=min(open_price, price) - 0.15,
            close=price,
            volume=150_000 if i < count - 1 else 420_000,
        ))
    return bars


def create_open_interest(spot: float) -> List[OptionsOpenInterest]:
    """Create a chain with put-heavy strikes below spot and call-heavy above."""
    rows = []
    for offset in range(-10, 11):
        strike = round(spot) + offset * 5
        below = strike < spot
        rows.append(OptionsOpenInterest(
            strike=float(strike),
            call_oi=2_000 if below else 7_500,
            put_oi=7_500 if below else 2_000,
            call_gamma=0.015,
            put_gamma=0.015,
            dte=1,
        ))
    return rows


def print_scan_result(result: ScanResult) -> None:
    """Print a scan outcome."""
    if not result.emitted:
        print(f"   {result.symbol}: no signal ({result.reason})")
        for candidate in result.candidates:
            print(f"     candidate {candidate.detector_type}: base {candidate.result.base_score:.1f}, "
                  f"{candidate.style_scores.recommended.value} {candidate.style_scores.recommended_score:.1f}")
        return

    signal = result.signal
    print(f"🚨 SIGNAL: {signal.symbol} {signal.opportunity_type} ({signal.direction.value})")
    print(f"   Style: {signal.recommended_style.value} score {signal.recommended_style_score:.1f}")
    print(f"   Entry: {signal.entry:.2f}  Stop: {signal.stop:.2f} ({signal.stop_level_label})")
    print(f"   Targets: {', '.join(f'{t:.2f}' for t in signal.targets)}  R:R {signal.risk_reward:.2f}")
    if signal.gamma_reasoning:
        print(f"   Gamma: {signal.gamma_reasoning}")
    for warning in signal.warnings:
        print(f"   ⚠️  {warning}")


def main():
    """Main demonstration function."""
    configure_logging(level="WARNING")

    print("🚀 Composite Signal Engine - Basic Usage Demo")
    print("=" * 60)

    # 1. Feature snapshots
    print("1. Building feature snapshots...")
    builder = FeatureBuilder()
    spy_bars = create_session_bars(510.0)
    qqq_bars = create_session_bars(440.0)
    spot = spy_bars[-1].close

    gamma = analyze_gamma_context("SPY", spot, create_open_interest(spot), as_of=spy_bars[-1].time)
    print(f"   SPY gamma: {gamma.summary.imbalance.value} ({gamma.summary.imbalance_strength.value}), "
          f"flip {gamma.summary.gamma_flip_level}, walls {gamma.summary.put_wall}/{gamma.summary.call_wall}")

    spy = builder.build("SPY", spy_bars[-1], spy_bars[:-1], live_context=LiveContext(gamma=gamma))
    qqq = builder.build("QQQ", qqq_bars[-1], qqq_bars[:-1])
    print(f"   SPY {spy.price.current:.2f} rsi {spy.rsi:.1f} rvol {spy.volume.relative_to_avg:.2f} "
          f"regime {spy.regime.value}")
    print()

    # 2. Structure levels
    print("2. Detecting structure levels...")
    structure = detect_all_structure_levels(spy_bars)
    key_levels = structure_to_key_levels(structure)
    print(f"   {len(structure)} structure levels, {len(key_levels)} usable as key levels")
    print()

    # 3. Scan
    print("3. Scanning symbols...")
    engine = CompositeSignalEngine(deduplication=SignalDeduplication())
    results = engine.scan_many([
        ScanRequest("SPY", spy, key_levels=key_levels, gamma_context=gamma),
        ScanRequest("QQQ", qqq),
    ])
    for result in results:
        print_scan_result(result)
    print()

    # 4. Standalone risk placement
    print("4. Level-aware stop for a manual long...")
    levels = extract_key_levels(reference_levels_from_features(spy))
    stop = calculate_level_aware_stop(spot, Direction.LONG, levels, spy.atr, trade_class=TradeClass.DAY)
    print(f"   Stop {stop.recommended_stop:.2f} ({stop.level_label}, {stop.confidence} confidence)")
    print(f"   {stop.reasoning}")

    pnl = calculate_pnl(2.50, 3.10, 5)
    print(f"   5 contracts 2.50 -> 3.10: net {pnl.net_pnl:.2f} after {pnl.total_commission:.2f} commission")
    print()

    print("📊 Engine stats:", engine.get_runtime_stats())


if __name__ == "__main__":
    main()
