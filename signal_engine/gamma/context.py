"""
Gamma context engine.

Filters an open interest pull to the tradeable range, grades its quality,
and assembles a GammaContext stamped with the as-of time. Consumers check
freshness with GammaContext.is_stale(now), or ensure_fresh when a stale
context should surface as an error, instead of relying on a cache.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

import structlog

from signal_engine.config.defaults import GammaParams
from signal_engine.data.models import OptionsChainData, OptionsOpenInterest
from signal_engine.errors import StaleDataError
from signal_engine.models.enums import Direction, TradingStyle
from signal_engine.models.gamma import (
    DataQuality,
    DealerPositioningSummary,
    ExpectedBehavior,
    GammaContext,
    GammaImbalance,
    ImbalanceStrength,
)

from .dealer_positioning import (
    calculate_gamma_exposure,
    calculate_total_net_gamma,
    classify_gamma_imbalance,
    determine_expected_behavior,
    find_gamma_flip_level,
    find_gamma_levels,
    find_max_gamma_strike,
    find_walls,
    generate_gamma_warnings,
    generate_trading_implications,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GammaScoreModifier:
    modifier: float
    reasoning: str


def filter_open_interest(
    open_interest: list[OptionsOpenInterest],
    spot_price: float,
    params: GammaParams
) -> list[OptionsOpenInterest]:
    """Rows within the DTE limit, OI minimum and strike range around spot."""
    if spot_price <= 0:
        return []
    return [
        row for row in open_interest
        if row.dte <= params.max_dte
        and (row.call_oi >= params.min_open_interest or row.put_oi >= params.min_open_interest)
        and abs(row.strike - spot_price) / spot_price <= params.strike_range_pct
    ]


def assess_data_quality(
    rows: list[OptionsOpenInterest],
    spot_price: float,
    params: GammaParams
) -> DataQuality:
    """
    Grade an open interest pull.

    LOW with too few rows or too little total OI, MEDIUM with a single
    expiration or fewer than 3 strikes within 2% of spot, else HIGH.
    """
    if len(rows) < params.min_strikes:
        return DataQuality.LOW

    total_oi = sum(row.call_oi + row.put_oi for row in rows)
    if total_oi < params.min_total_open_interest:
        return DataQuality.LOW

    if len({row.expiration for row in rows}) < 2:
        return DataQuality.MEDIUM

    near_atm = [row for row in rows if abs(row.strike - spot_price) / spot_price < 0.02]
    if len(near_atm) < 3:
        return DataQuality.MEDIUM

    return DataQuality.HIGH


def create_estimated_context(
    symbol: str,
    spot_price: float,
    data_quality: DataQuality,
    as_of: Optional[datetime] = None,
    stale_after: timedelta = timedelta(minutes=30)
) -> GammaContext:
    """Neutral context used when the options data cannot support analysis."""
    summary = DealerPositioningSummary(
        symbol=symbol,
        spot_price=spot_price,
        total_net_gex=0.0,
        gamma_flip_level=None,
        put_wall=None,
        call_wall=None,
        max_gamma_strike=spot_price,
        imbalance=GammaImbalance.NEUTRAL,
        imbalance_strength=ImbalanceStrength.WEAK,
        expected_behavior=ExpectedBehavior.VOLATILE,
        data_quality=data_quality,
        expirations_analyzed=0,
    )
    return GammaContext(
        summary=summary,
        implications=(
            "Insufficient options data for gamma analysis",
            "Using conservative assumptions - expect normal volatility",
            "Consider checking data availability during market hours",
        ),
        warnings=(
            f"Limited gamma data for {symbol} - analysis is estimated",
            "Real-time options data required for accurate positioning",
        ),
        computed_at=as_of,
        stale_after=stale_after,
    )


def analyze_gamma_context(
    symbol: str,
    spot_price: float,
    open_interest: list[OptionsOpenInterest],
    params: Optional[GammaParams] = None,
    as_of: Optional[datetime] = None
) -> GammaContext:
    """
    Build the dealer positioning context for a symbol.

    Args:
        symbol: Underlying symbol
        spot_price: Current underlying price
        open_interest: Open interest pull (all expirations)
        params: Gamma parameters
        as_of: Timestamp of the pull, used for staleness checks

    Returns:
        GammaContext; an estimated neutral context when data quality is LOW
    """
    params = params or GammaParams()
    stale_after = timedelta(minutes=params.stale_after_minutes)

    rows = filter_open_interest(open_interest, spot_price, params)
    data_quality = assess_data_quality(rows, spot_price, params) if spot_price > 0 else DataQuality.LOW
    exposures = calculate_gamma_exposure(rows, spot_price, params.contract_multiplier)

    if data_quality == DataQuality.LOW or len(exposures) < params.min_strikes:
        logger.debug(
            "Gamma context estimated",
            symbol=symbol,
            rows=len(rows),
            strikes=len(exposures),
            data_quality=data_quality.value,
        )
        return create_estimated_context(symbol, spot_price, data_quality, as_of, stale_after)

    total = calculate_total_net_gamma(exposures)
    imbalance, strength = classify_gamma_imbalance(total, exposures)
    flip = find_gamma_flip_level(exposures, spot_price, params.flip_acceptance_pct)
    put_wall, call_wall = find_walls(exposures, spot_price, params.wall_oi_fraction)
    support, resistance = find_gamma_levels(exposures, spot_price)

    summary = DealerPositioningSummary(
        symbol=symbol,
        spot_price=spot_price,
        total_net_gex=total,
        gamma_flip_level=flip,
        put_wall=put_wall,
        call_wall=call_wall,
        max_gamma_strike=find_max_gamma_strike(exposures, spot_price),
        imbalance=imbalance,
        imbalance_strength=strength,
        expected_behavior=determine_expected_behavior(
            imbalance, strength, spot_price, flip, put_wall, call_wall
        ),
        support_levels=tuple(support),
        resistance_levels=tuple(resistance),
        data_quality=data_quality,
        expirations_analyzed=len({row.expiration for row in rows}),
    )

    return GammaContext(
        summary=summary,
        by_strike=tuple(exposures),
        implications=tuple(generate_trading_implications(summary)),
        warnings=tuple(generate_gamma_warnings(summary, spot_price)),
        computed_at=as_of,
        stale_after=stale_after,
    )


def get_gamma_score_modifier(
    context: GammaContext,
    direction: Union[Direction, str],
    style: Union[TradingStyle, str]
) -> GammaScoreModifier:
    """
    Score multiplier reflecting how dealer positioning suits a trade.

    Returns:
        Multiplier clamped to [0.5, 1.5] and rounded to 2 decimals, with the
        reasons joined by "; "
    """
    summary = context.summary
    if summary.data_quality == DataQuality.LOW:
        return GammaScoreModifier(1.0, "Insufficient gamma data for adjustment")

    style = TradingStyle(style)
    direction = Direction(direction)
    short_term = style in (TradingStyle.SCALP, TradingStyle.DAY_TRADE)

    modifier = 1.0
    reasons = []

    behavior = summary.expected_behavior
    if behavior == ExpectedBehavior.MEAN_REVERTING:
        if short_term:
            modifier *= 1.1
            reasons.append("Mean-reverting gamma favors shorter-term trades")
        if style == TradingStyle.SWING:
            modifier *= 0.85
            reasons.append("Mean-reverting gamma may limit swing potential")
    elif behavior == ExpectedBehavior.TRENDING:
        if style == TradingStyle.SWING:
            modifier *= 1.15
            reasons.append("Negative gamma amplifies trends - good for swings")
        if style == TradingStyle.SCALP:
            modifier *= 0.9
            reasons.append("Negative gamma may cause whipsaws on scalps")
    elif behavior == ExpectedBehavior.PINNING:
        if style == TradingStyle.SCALP:
            modifier *= 1.2
            reasons.append("Gamma pinning creates excellent scalp conditions")
        if style == TradingStyle.SWING:
            modifier *= 0.7
            reasons.append("Gamma pinning limits directional movement")
    elif behavior == ExpectedBehavior.VOLATILE:
        modifier *= 0.85
        reasons.append("Uncertain gamma positioning - increased risk")

    if summary.imbalance_strength == ImbalanceStrength.STRONG:
        modifier *= 1.05
        reasons.append("Strong gamma positioning increases predictability")
    elif summary.imbalance_strength == ImbalanceStrength.WEAK:
        modifier *= 0.95
        reasons.append("Weak gamma positioning reduces conviction")

    if direction == Direction.LONG and summary.put_wall is not None:
        modifier *= 1.05
        reasons.append("Near put wall support")
    if direction == Direction.SHORT and summary.call_wall is not None:
        modifier *= 1.05
        reasons.append("Near call wall resistance")

    modifier = max(0.5, min(1.5, modifier))
    return GammaScoreModifier(
        modifier=round(modifier, 2),
        reasoning="; ".join(reasons) or "No significant gamma adjustment",
    )


def options_data_from_context(
    context: GammaContext,
    minutes_to_expiry: Optional[float] = None,
    is_0dte: bool = False
) -> OptionsChainData:
    """Options-aware detector inputs derived from a gamma context."""
    summary = context.summary
    return OptionsChainData(
        max_gamma_strike=summary.max_gamma_strike,
        dealer_net_gamma=summary.total_net_gex,
        gamma_flip_level=summary.gamma_flip_level,
        minutes_to_expiry=minutes_to_expiry,
        is_0dte=is_0dte,
        total_open_interest=sum(e.total_oi for e in context.by_strike) or None,
    )


def ensure_fresh(context: GammaContext, now: datetime) -> GammaContext:
    """
    Return the context unchanged if it is inside its freshness window.

    Raises:
        StaleDataError: Context is older than stale_after, or was never stamped
    """
    if not context.is_stale(now):
        return context

    age = context.age(now)
    raise StaleDataError(
        f"Gamma context for {context.summary.symbol} is stale",
        age_minutes=age.total_seconds() / 60 if age is not None else None,
        threshold_minutes=context.stale_after.total_seconds() / 60,
        context={"computed_at": context.computed_at.isoformat() if context.computed_at else None},
    )
