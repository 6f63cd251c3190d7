"""
Round-trip P&L accounting with commissions and slippage.

Results are reported to an injected MetricsObserver after computation. The
observer is a side channel only: its failures are logged and never change
the returned result.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

from signal_engine.config.defaults import CostParams
from signal_engine.models.risk import PnLResult

logger = structlog.get_logger(__name__)


class MetricsObserver(Protocol):
    """Receives P&L metrics after each calculation."""

    def record_pnl(
        self,
        gross_pnl_percent: float,
        net_pnl_percent: float,
        commission: float,
        slippage: float
    ) -> None:
        ...


@dataclass(frozen=True)
class WinRateAdjustment:
    adjusted_win_rate: float
    breakeven_win_rate: float
    expected_value: float


def calculate_slippage_cost(
    mid_price: float,
    quantity: int,
    params: CostParams,
    bid: Optional[float] = None,
    ask: Optional[float] = None
) -> float:
    """
    Dollar slippage of one fill.

    The actual bid/ask spread replaces the configured spread percent when both
    quotes are positive.
    """
    slippage_pct = params.spread_percent / 100
    if bid is not None and ask is not None and bid > 0 and ask > 0:
        slippage_pct = (ask - bid) / ((bid + ask) / 2)

    slippage_pct *= params.market_impact * params.execution_quality
    return mid_price * quantity * slippage_pct


def calculate_pnl(
    entry_price: float,
    exit_price: float,
    quantity: int,
    params: Optional[CostParams] = None,
    entry_bid: Optional[float] = None,
    entry_ask: Optional[float] = None,
    exit_bid: Optional[float] = None,
    exit_ask: Optional[float] = None,
    observer: Optional[MetricsObserver] = None
) -> PnLResult:
    """
    Calculate gross and net P&L of a round trip.

    Args:
        entry_price: Premium paid per contract
        exit_price: Premium received per contract
        quantity: Number of contracts
        params: Commission and slippage parameters
        entry_bid, entry_ask, exit_bid, exit_ask: Quotes for actual spread slippage
        observer: Optional metrics observer

    Returns:
        PnLResult with cost breakdown; percentages are 0 where undefined
    """
    params = params or CostParams()

    gross_per_contract = exit_price - entry_price
    gross_pnl = gross_per_contract * quantity
    gross_pnl_percent = gross_per_contract / entry_price * 100 if entry_price > 0 else 0.0

    # Half of the per-trade minimum applies to each side
    entry_commission = max(
        (params.commission_per_contract_open + params.exchange_fee) * quantity,
        params.min_commission / 2,
    )
    exit_commission = max(
        (params.commission_per_contract_close + params.exchange_fee) * quantity,
        params.min_commission / 2,
    )
    total_commission = entry_commission + exit_commission

    entry_slippage = calculate_slippage_cost(entry_price, quantity, params, entry_bid, entry_ask)
    exit_slippage = calculate_slippage_cost(exit_price, quantity, params, exit_bid, exit_ask)
    slippage_cost = entry_slippage + exit_slippage

    total_costs = total_commission + slippage_cost
    net_pnl = gross_pnl - total_costs

    cost_basis = entry_price * quantity + entry_commission + entry_slippage
    net_pnl_percent = net_pnl / cost_basis * 100 if cost_basis > 0 else 0.0

    commission_pct = total_commission / abs(gross_pnl) * 100 if gross_pnl != 0 else 0.0
    slippage_pct = slippage_cost / abs(gross_pnl) * 100 if gross_pnl != 0 else 0.0

    breakeven_move = 0.0
    if entry_price > 0 and quantity > 0:
        breakeven_move = total_costs / quantity / entry_price * 100

    result = PnLResult(
        gross_pnl=gross_pnl,
        gross_pnl_percent=gross_pnl_percent,
        entry_commission=entry_commission,
        exit_commission=exit_commission,
        total_commission=total_commission,
        slippage_cost=slippage_cost,
        net_pnl=net_pnl,
        net_pnl_percent=net_pnl_percent,
        commission_percent_of_gross=commission_pct,
        slippage_percent_of_gross=slippage_pct,
        cost_percent_of_gross=commission_pct + slippage_pct,
        breakeven_move_percent=breakeven_move,
    )

    if observer is not None:
        try:
            observer.record_pnl(gross_pnl_percent, net_pnl_percent, total_commission, slippage_cost)
        except Exception as e:
            logger.debug("Metrics observer failed", error=str(e), error_type=type(e).__name__)

    return result


def calculate_breakeven_price(
    entry_price: float,
    quantity: int = 1,
    params: Optional[CostParams] = None
) -> float:
    """Exit price needed to cover round-trip commission and entry slippage."""
    if entry_price <= 0 or quantity <= 0:
        return entry_price

    params = params or CostParams()
    commission = (params.commission_per_contract_open + params.commission_per_contract_close) / quantity
    slippage = (
        entry_price * params.spread_percent / 100
        * params.market_impact
        * params.execution_quality
    ) / quantity
    return entry_price + commission + slippage


def adjust_win_rate_for_costs(
    gross_win_rate: float,
    average_win: float,
    average_loss: float,
    cost_percent: float
) -> WinRateAdjustment:
    """
    Win rate, breakeven win rate and expectancy after trading costs.

    Args:
        gross_win_rate: Win rate before costs (0-100)
        average_win: Average winning trade (%)
        average_loss: Average losing trade (%, positive)
        cost_percent: Round-trip cost (%)
    """
    adjusted_win = max(0.01, average_win - cost_percent)
    adjusted_loss = average_loss + cost_percent

    if average_win > 0:
        wins_above_breakeven = gross_win_rate - cost_percent / average_win * 100
    else:
        wins_above_breakeven = 0.0
    adjusted_win_rate = max(0.0, min(100.0, wins_above_breakeven))

    breakeven_win_rate = adjusted_loss / (adjusted_win + adjusted_loss) * 100

    win_probability = adjusted_win_rate / 100
    expected_value = win_probability * adjusted_win - (1 - win_probability) * adjusted_loss

    return WinRateAdjustment(
        adjusted_win_rate=adjusted_win_rate,
        breakeven_win_rate=breakeven_win_rate,
        expected_value=expected_value,
    )
