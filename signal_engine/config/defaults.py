"""Default configuration parameters for the composite signal engine."""

from dataclasses import dataclass


@dataclass(frozen=True)
class IndicatorParams:
    """Indicator calculation parameters for feature synthesis."""
    ema_fast: int = 8
    ema_medium: int = 21
    ema_slow: int = 50
    ema_trend: int = 200
    rsi_period: int = 14
    atr_period: int = 14
    rvol_period: int = 20                           # Trailing volume average window
    lookback_bars: int = 200                        # Closes kept for moving averages
    mtf_atr_min_bars: int = 20                      # Prefer 15m ATR above this many bars
    breakout_lookback: int = 10                     # Prior highs/lows for breakout flags
    mean_reversion_oversold: float = 35.0
    mean_reversion_overbought: float = 65.0
    regime_volatile_atr_pct: float = 2.0            # ATR% of price above which regime is volatile


@dataclass(frozen=True)
class SessionParams:
    """Regular trading hours, anchored in the session timezone."""
    timezone: str = "UTC"
    rth_open_hour: int = 14
    rth_open_minute: int = 30
    rth_close_hour: int = 21
    orb_bars: int = 15                              # Bars forming the opening range
    allow_off_hours: bool = False                   # Let detectors run outside RTH


@dataclass(frozen=True)
class FlowParams:
    """Options flow aggregation parameters."""
    window_minutes: int = 60                        # Historical replay window
    default_score: float = 50.0
    default_conviction: float = 20.0
    bullish_threshold: float = 65.0                 # Score above => bullish bias
    bearish_threshold: float = 35.0                 # Score below => bearish bias
    live_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class StructureParams:
    """Structure-level detection parameters."""
    swing_lookback: int = 5
    liquidity_threshold: float = 0.001              # Relative cluster tolerance
    min_impulse_percent: float = 0.5                # Order block impulse threshold
    min_gap_percent: float = 0.1                    # Fair value gap minimum size
    max_levels: int = 50
    confluence_threshold: float = 0.003
    nearby_distance_pct: float = 3.0


@dataclass(frozen=True)
class GammaParams:
    """Dealer positioning and gamma context parameters."""
    contract_multiplier: int = 100
    max_dte: int = 30
    min_open_interest: int = 100
    strike_range_pct: float = 0.10                  # Strikes within +/- 10% of spot
    min_strikes: int = 5
    min_total_open_interest: int = 10000
    flip_acceptance_pct: float = 0.05               # Reject flips further than 5% from spot
    wall_oi_fraction: float = 0.10                  # Wall OI must be >= 10% of max OI
    stale_after_minutes: int = 30


@dataclass(frozen=True)
class StopParams:
    """Level-aware stop placement parameters."""
    max_stop_percent: float = 5.0
    min_stop_percent: float = 0.5
    buffer_atr_multiplier: float = 0.1
    fallback_atr_multiplier: float = 1.0
    proximity_weight: float = 0.4
    strength_weight: float = 0.4
    recency_weight: float = 0.2


@dataclass(frozen=True)
class PatienceParams:
    """Patience candle detection parameters."""
    max_body_ratio: float = 0.4                     # Body vs ATR
    max_body_vs_previous: float = 0.6
    require_inside_bar: bool = False
    max_consecutive: int = 3


@dataclass(frozen=True)
class ConfluenceParams:
    """Level confluence parameters."""
    proximity_percent: float = 0.3
    min_levels: int = 2


@dataclass(frozen=True)
class ScannerParams:
    """Composite scanner thresholds and deduplication."""
    detector_version: str = "1.0.0"
    signal_ttl_minutes: int = 5
    min_base_score: float = 60.0
    min_style_score: float = 65.0
    min_risk_reward: float = 1.5
    weekend_min_base_score: float = 50.0            # Applied outside regular hours
    weekend_min_style_score: float = 55.0
    weekend_min_risk_reward: float = 1.2
    adaptive_thresholds: bool = False               # Time of day, VIX and regime aware minimums
    confidence_scoring: bool = False                # Scale scores by data completeness
    min_confidence: float = 40.0                    # Below this data confidence nothing emits
    cooldown_minutes: int = 15                      # Per symbol + detector type
    max_signals_per_symbol_per_hour: int = 4
    gamma_flip_cutoff_minutes: int = 240            # Minutes after open before flip plays


@dataclass(frozen=True)
class CostParams:
    """Commission and slippage parameters for P&L accounting."""
    commission_per_contract_open: float = 0.65
    commission_per_contract_close: float = 0.65
    exchange_fee: float = 0.01
    min_commission: float = 1.00
    spread_percent: float = 0.5
    market_impact: float = 1.0
    execution_quality: float = 0.98


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""
    indicators: IndicatorParams
    session: SessionParams
    flow: FlowParams
    structure: StructureParams
    gamma: GammaParams
    stops: StopParams
    patience: PatienceParams
    confluence: ConfluenceParams
    scanner: ScannerParams
    costs: CostParams


def get_default_config() -> EngineConfig:
    """Get the default configuration instance."""
    return EngineConfig(
        indicators=IndicatorParams(),
        session=SessionParams(),
        flow=FlowParams(),
        structure=StructureParams(),
        gamma=GammaParams(),
        stops=StopParams(),
        patience=PatienceParams(),
        confluence=ConfluenceParams(),
        scanner=ScannerParams(),
        costs=CostParams(),
    )
