"""
Dealer gamma exposure calculations.

Dealers are modeled as net short the listed options: short calls contribute
positive dealer gamma and short puts negative dealer gamma. Exposures are in
dollars per 1% move of the underlying.
"""

import math
from typing import Optional

from signal_engine.data.models import OptionsOpenInterest
from signal_engine.models.gamma import (
    DataQuality,
    DealerPositioningSummary,
    ExpectedBehavior,
    GammaExposureByStrike,
    GammaImbalance,
    ImbalanceStrength,
)


def round_price(value: float) -> float:
    """Round half-up to cents."""
    return math.floor(value * 100 + 0.5) / 100


def calculate_gamma_exposure(
    open_interest: list[OptionsOpenInterest],
    spot_price: float,
    contract_multiplier: int = 100
) -> list[GammaExposureByStrike]:
    """
    Aggregate dealer gamma exposure per strike.

    GEX = gamma x OI x spot x multiplier x 0.01. The put term is sign-flipped
    so a strike with only put open interest has negative net exposure.

    Args:
        open_interest: Open interest rows (one per strike and expiration)
        spot_price: Current underlying price
        contract_multiplier: Shares per contract

    Returns:
        Exposure by strike sorted by strike, with percent_of_max populated
    """
    by_strike: dict[float, list[float]] = {}
    for row in open_interest:
        call_gex = row.call_gamma * row.call_oi * spot_price * contract_multiplier * 0.01
        put_gex = row.put_gamma * row.put_oi * spot_price * contract_multiplier * 0.01

        totals = by_strike.setdefault(row.strike, [0.0, 0.0, 0.0, 0.0])
        totals[0] += call_gex
        totals[1] -= put_gex
        totals[2] += call_gex - put_gex
        totals[3] += row.call_oi + row.put_oi

    max_abs = max((abs(totals[2]) for totals in by_strike.values()), default=0.0)

    return [
        GammaExposureByStrike(
            strike=strike,
            call_gex=totals[0],
            put_gex=totals[1],
            net_gex=totals[2],
            total_oi=totals[3],
            percent_of_max=abs(totals[2]) / max_abs * 100 if max_abs > 0 else 0.0,
        )
        for strike, totals in sorted(by_strike.items())
    ]


def find_gamma_flip_level(
    exposures: list[GammaExposureByStrike],
    spot_price: float,
    max_distance_pct: float = 0.05
) -> Optional[float]:
    """
    Price where net dealer gamma changes sign.

    Linear interpolation between the first pair of adjacent strikes whose net
    exposure changes sign within max_distance_pct of spot.

    Returns:
        Flip level rounded to cents, or None if no acceptable flip exists
    """
    if len(exposures) < 2 or spot_price <= 0:
        return None

    ordered = sorted(exposures, key=lambda e: e.strike)
    for curr, nxt in zip(ordered, ordered[1:]):
        if curr.net_gex * nxt.net_gex < 0:
            flip = curr.strike + (nxt.strike - curr.strike) * abs(curr.net_gex) / (
                abs(curr.net_gex) + abs(nxt.net_gex)
            )
            if abs(flip - spot_price) / spot_price < max_distance_pct:
                return round_price(flip)
    return None


def find_walls(
    exposures: list[GammaExposureByStrike],
    spot_price: float,
    min_oi_fraction: float = 0.1
) -> tuple[Optional[float], Optional[float]]:
    """
    Put wall and call wall strikes.

    Returns:
        (put_wall, call_wall): highest-OI strike below / above spot with OI at
        least min_oi_fraction of the maximum OI
    """
    if not exposures:
        return None, None

    threshold = max(e.total_oi for e in exposures) * min_oi_fraction

    below = [e for e in exposures if e.strike < spot_price and e.total_oi >= threshold]
    above = [e for e in exposures if e.strike > spot_price and e.total_oi >= threshold]

    put_wall = max(below, key=lambda e: e.total_oi).strike if below else None
    call_wall = max(above, key=lambda e: e.total_oi).strike if above else None
    return put_wall, call_wall


def calculate_total_net_gamma(exposures: list[GammaExposureByStrike]) -> float:
    return sum(e.net_gex for e in exposures)


def classify_gamma_imbalance(
    total_net_gamma: float,
    exposures: list[GammaExposureByStrike]
) -> tuple[GammaImbalance, ImbalanceStrength]:
    """Sign and strength of the aggregate dealer gamma position."""
    avg_abs = sum(abs(e.net_gex) for e in exposures) / max(len(exposures), 1)
    if avg_abs == 0:
        return GammaImbalance.NEUTRAL, ImbalanceStrength.WEAK

    ratio = abs(total_net_gamma) / (avg_abs * len(exposures))
    if ratio > 0.5:
        strength = ImbalanceStrength.STRONG
    elif ratio > 0.2:
        strength = ImbalanceStrength.MODERATE
    else:
        strength = ImbalanceStrength.WEAK

    if abs(total_net_gamma) < avg_abs * 0.5:
        return GammaImbalance.NEUTRAL, strength

    return (GammaImbalance.POSITIVE if total_net_gamma > 0 else GammaImbalance.NEGATIVE), strength


def determine_expected_behavior(
    imbalance: GammaImbalance,
    strength: ImbalanceStrength,
    spot_price: float,
    gamma_flip_level: Optional[float],
    put_wall: Optional[float],
    call_wall: Optional[float]
) -> ExpectedBehavior:
    """
    Expected dealer-driven behavior, first match wins.

    Pinning between close walls, then strong positive (mean reverting), strong
    negative (trending), near the flip (volatile), then the imbalance sign.
    """
    if put_wall is not None and call_wall is not None and spot_price > 0:
        wall_range = call_wall - put_wall
        if wall_range > 0:
            position = (spot_price - put_wall) / wall_range
            if 0.2 < position < 0.8 and wall_range / spot_price < 0.03:
                return ExpectedBehavior.PINNING

    if imbalance == GammaImbalance.POSITIVE and strength == ImbalanceStrength.STRONG:
        return ExpectedBehavior.MEAN_REVERTING

    if imbalance == GammaImbalance.NEGATIVE and strength == ImbalanceStrength.STRONG:
        return ExpectedBehavior.TRENDING

    if gamma_flip_level is not None and spot_price > 0 and abs(spot_price - gamma_flip_level) / spot_price < 0.01:
        return ExpectedBehavior.VOLATILE

    if imbalance == GammaImbalance.POSITIVE:
        return ExpectedBehavior.MEAN_REVERTING
    if imbalance == GammaImbalance.NEGATIVE:
        return ExpectedBehavior.TRENDING
    return ExpectedBehavior.VOLATILE


def find_gamma_levels(
    exposures: list[GammaExposureByStrike],
    spot_price: float,
    top_n: int = 3
) -> tuple[list[float], list[float]]:
    """
    Gamma support and resistance strikes.

    Returns:
        (support, resistance): largest positive net strikes below spot and
        most negative net strikes above spot
    """
    support = sorted(
        (e for e in exposures if e.strike < spot_price and e.net_gex > 0),
        key=lambda e: e.net_gex,
        reverse=True,
    )[:top_n]
    resistance = sorted(
        (e for e in exposures if e.strike > spot_price and e.net_gex < 0),
        key=lambda e: e.net_gex,
    )[:top_n]
    return [e.strike for e in support], [e.strike for e in resistance]


def find_max_gamma_strike(exposures: list[GammaExposureByStrike], spot_price: float) -> float:
    """Strike with the largest absolute net exposure, spot when empty."""
    if not exposures:
        return spot_price
    best = exposures[0]
    for exposure in exposures[1:]:
        if abs(exposure.net_gex) > abs(best.net_gex):
            best = exposure
    return best.strike


_BEHAVIOR_IMPLICATIONS = {
    ExpectedBehavior.MEAN_REVERTING: (
        "Dealers will dampen moves - fade extremes, buy dips, sell rallies",
        "Mean reversion strategies favored over breakouts",
    ),
    ExpectedBehavior.TRENDING: (
        "Dealers will amplify moves - trend following favored",
        "Breakouts more likely to extend - don't fade",
    ),
    ExpectedBehavior.PINNING: (
        "Price likely to pin between walls - range bound",
        "Sell premium strategies favored (iron condors, strangles)",
        "Avoid directional plays until breakout from range",
    ),
    ExpectedBehavior.VOLATILE: (
        "Near gamma flip - expect unpredictable swings",
        "Reduce position size - increased whipsaw risk",
        "Wait for clearer gamma positioning before committing",
    ),
}


def generate_trading_implications(summary: DealerPositioningSummary) -> list[str]:
    """Advisory strings describing how dealer hedging should shape trades."""
    implications = list(_BEHAVIOR_IMPLICATIONS[summary.expected_behavior])

    if summary.imbalance_strength == ImbalanceStrength.STRONG:
        if summary.expected_behavior == ExpectedBehavior.MEAN_REVERTING:
            implications.append("Strong gamma cushion - expect tight ranges")
        elif summary.expected_behavior == ExpectedBehavior.TRENDING:
            implications.append("High volatility likely - size down, widen stops")

    if summary.gamma_flip_level is not None:
        implications.append(
            f"Gamma flip at {summary.gamma_flip_level:.2f} - behavior changes at this level"
        )
    if summary.put_wall is not None:
        implications.append(f"Put wall support at {summary.put_wall:g} - dealers buy here")
    if summary.call_wall is not None:
        implications.append(f"Call wall resistance at {summary.call_wall:g} - dealers sell here")

    return implications


def generate_gamma_warnings(summary: DealerPositioningSummary, spot_price: float) -> list[str]:
    """Advisory warnings about data quality and dangerous positioning."""
    warnings = []

    if summary.data_quality == DataQuality.LOW:
        warnings.append("Limited options data - gamma analysis may be unreliable")

    if (
        summary.gamma_flip_level is not None
        and spot_price > 0
        and abs(spot_price - summary.gamma_flip_level) / spot_price < 0.005
    ):
        warnings.append("CAUTION: Price at gamma flip level - expect volatility")

    if summary.imbalance == GammaImbalance.NEGATIVE and summary.imbalance_strength == ImbalanceStrength.STRONG:
        warnings.append("WARNING: Strong negative gamma - moves may accelerate rapidly")

    if summary.expirations_analyzed < 2:
        warnings.append("Only near-term expirations analyzed - longer-term gamma not reflected")

    return warnings
