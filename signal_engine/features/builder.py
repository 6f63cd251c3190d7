"""
Point-in-time feature synthesis.

FeatureBuilder turns a bar history (plus optional multi-timeframe bars, flow
prints and live context) into an immutable SymbolFeatures snapshot. The build
is a pure function of its inputs: the current bar time stands in for "now".
"""

import math
from dataclasses import replace
from datetime import datetime
from typing import Optional, TypeVar

import structlog

from signal_engine.config.defaults import EngineConfig, SessionParams, get_default_config
from signal_engine.data.models import Bar, OptionsFlowRecord
from signal_engine.detectors.ltp.patience import detect_patience_candle
from signal_engine.errors import MalformedDataError, MetricsCalculationError, MissingDataError
from signal_engine.metrics.atr import calculate_atr, calculate_atr_or_partial
from signal_engine.metrics.momentum import calculate_rsi
from signal_engine.metrics.moving_average import calculate_ema
from signal_engine.metrics.regime import classify_regime
from signal_engine.metrics.volume import relative_volume, trailing_average_volume
from signal_engine.metrics.vwap import calculate_vwap, session_bars, vwap_distance_pct
from signal_engine.models.enums import VIXLevel
from signal_engine.models.features import (
    MovingAverages,
    PatternFeatures,
    PriceFeatures,
    SessionFeatures,
    SymbolFeatures,
    TimeframeFeatures,
    VolumeFeatures,
    VWAPFeatures,
)
from signal_engine.models.levels import ReferenceLevels
from signal_engine.utils.time import as_utc

from .context import LiveContext, resolve_context
from .flow import default_flow, flow_from_live, replay_flow
from .greeks import build_greeks
from .session import is_regular_hours, minutes_since_open, session_timezone

logger = structlog.get_logger(__name__)

AUXILIARY_TIMEFRAMES = ("5m", "15m", "60m")
PRIMARY_TIMEFRAME = "1m"
RECENT_BARS_KEPT = 60

T = TypeVar("T", Bar, OptionsFlowRecord)


def _with_utc_times(items: list[T]) -> list[T]:
    """Naive timestamps are UTC; aware ones are left as given."""
    return [item if item.time.tzinfo is not None else replace(item, time=as_utc(item.time)) for item in items]


def _bars_until(bars: list[Bar], as_of: datetime) -> list[Bar]:
    return [bar for bar in bars if bar.time <= as_of]


def _timeframe_features(bars: list[Bar], rsi_period: int, ema_period: int) -> TimeframeFeatures:
    closes = [bar.close for bar in bars]
    rsi = calculate_rsi(closes, rsi_period)
    ema = calculate_ema(closes, ema_period)
    return TimeframeFeatures(
        price_current=closes[-1],
        price_prev=closes[-2] if len(closes) > 1 else closes[-1],
        rsi14=rsi if rsi is not None else 50.0,
        ema21=ema if ema is not None else closes[-1],
    )


def _is_premarket(bar: Bar, params: SessionParams) -> bool:
    local = bar.time.astimezone(session_timezone(params))
    return local.hour * 60 + local.minute < params.rth_open_hour * 60 + params.rth_open_minute


class FeatureBuilder:
    """Builds SymbolFeatures snapshots from bar history."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_default_config()

    def build(
        self,
        symbol: str,
        current_bar: Bar,
        price_history: list[Bar],
        mtf_history: Optional[dict[str, list[Bar]]] = None,
        flow_history: Optional[list[OptionsFlowRecord]] = None,
        live_context: Optional[LiveContext] = None,
        reference_levels: Optional[ReferenceLevels] = None,
        vix: Optional[float] = None
    ) -> SymbolFeatures:
        """
        Build a feature snapshot for one symbol at the current bar.

        Args:
            symbol: Symbol being evaluated
            current_bar: Latest bar (its time is the snapshot time)
            price_history: Primary timeframe bars, chronological; bars at or
                after the current bar time are ignored
            mtf_history: Auxiliary timeframe bars keyed by "5m", "15m", "60m"
            flow_history: Historical options flow prints for replay
            live_context: Live flow/gamma contexts already fetched
            reference_levels: Externally supplied prior-day/premarket levels
            vix: Latest VIX print, classified into the snapshot's volatility level

        Returns:
            Immutable SymbolFeatures snapshot

        Raises:
            MissingDataError: No current bar
            MalformedDataError: Current bar has invalid OHLCV values
            MetricsCalculationError: An indicator calculation failed
        """
        if current_bar is None:
            raise MissingDataError("Current bar is required for feature synthesis", data_type="bar")
        self._validate_bar(current_bar)

        cfg = self.config
        ind = cfg.indicators
        current_bar = _with_utc_times([current_bar])[0]
        price_history = _with_utc_times(price_history)
        mtf_history = {tf: _with_utc_times(tf_bars) for tf, tf_bars in (mtf_history or {}).items()}
        flow_history = _with_utc_times(flow_history) if flow_history else flow_history
        now = current_bar.time

        bars = [bar for bar in price_history if bar.time < now] + [current_bar]
        closes = [bar.close for bar in bars][-ind.lookback_bars:]
        price = current_bar.close

        # Moving averages and momentum
        try:
            ema = MovingAverages(
                ema8=self._ema_or_price(closes, ind.ema_fast, price),
                ema21=self._ema_or_price(closes, ind.ema_medium, price),
                ema50=self._ema_or_price(closes, ind.ema_slow, price),
                ema200=self._ema_or_price(closes, ind.ema_trend, price),
            )
            rsi_value = calculate_rsi(closes, ind.rsi_period)
        except Exception as e:
            raise MetricsCalculationError(
                f"Moving average calculation failed: {str(e)}",
                metric_name="ema_rsi",
                calculation_input={"close_count": len(closes)}
            )
        rsi = rsi_value if rsi_value is not None else 50.0

        # Volatility: the 15m ATR is preferred once enough 15m bars exist
        bars_15m = _bars_until(mtf_history.get("15m", []), now)
        try:
            atr = calculate_atr_or_partial(bars, ind.atr_period)
            if len(bars_15m) > ind.mtf_atr_min_bars:
                atr_15m = calculate_atr(bars_15m, ind.atr_period)
                if atr_15m is not None:
                    atr = atr_15m
        except Exception as e:
            raise MetricsCalculationError(
                f"ATR calculation failed: {str(e)}",
                metric_name="atr",
                calculation_input={"bar_count": len(bars), "bar_count_15m": len(bars_15m)}
            )

        # Session anchored VWAP
        tz = session_timezone(cfg.session)
        today = session_bars(bars, now, tz)
        vwap_value = calculate_vwap(today)
        vwap = VWAPFeatures(
            value=vwap_value if vwap_value is not None else 0.0,
            distance_pct=vwap_distance_pct(price, vwap_value),
        )

        # Relative volume against the trailing average
        avg_volume = trailing_average_volume(bars[:-1], ind.rvol_period)
        volume = VolumeFeatures(
            current=current_bar.volume,
            avg=avg_volume,
            relative_to_avg=relative_volume(current_bar.volume, avg_volume),
        )

        prev_close = bars[-2].close if len(bars) > 1 else current_bar.open
        price_block = PriceFeatures(
            current=price,
            open=current_bar.open,
            high=current_bar.high,
            low=current_bar.low,
            prev_close=prev_close,
        )

        # Multi-timeframe mirrors, each computed independently
        mtf = {PRIMARY_TIMEFRAME: _timeframe_features(bars, ind.rsi_period, ind.ema_medium)}
        for timeframe in AUXILIARY_TIMEFRAMES:
            tf_bars = _bars_until(mtf_history.get(timeframe, []), now)[-ind.lookback_bars:]
            if tf_bars:
                mtf[timeframe] = _timeframe_features(tf_bars, ind.rsi_period, ind.ema_medium)

        session = SessionFeatures(
            is_regular_hours=is_regular_hours(now, cfg.session),
            minutes_since_open=minutes_since_open(now, cfg.session),
            allow_off_hours=cfg.session.allow_off_hours,
        )

        pattern = self._build_pattern(bars, bars_15m, today, price, rsi, ema, atr, reference_levels)
        if vix is not None:
            pattern = replace(pattern, vix_level=VIXLevel.from_value(vix))

        flow = resolve_context(
            live=(lambda: flow_from_live(live_context.flow, cfg.flow))
            if live_context is not None and live_context.flow is not None else None,
            historical=(lambda: replay_flow(flow_history, now, cfg.flow)) if flow_history else None,
            default=lambda: default_flow(cfg.flow),
            name="flow",
            symbol=symbol,
        ).value

        gamma_context = live_context.gamma if live_context is not None else None
        greeks = resolve_context(
            live=(lambda: build_greeks(gamma_context) if not gamma_context.is_stale(now) else None)
            if gamma_context is not None else None,
            historical=None,
            default=lambda: build_greeks(None),
            name="gamma",
            symbol=symbol,
        ).value

        regime = classify_regime(price, ema.ema21, ema.ema50, atr, ind.regime_volatile_atr_pct)

        features = SymbolFeatures(
            symbol=symbol,
            time=now,
            price=price_block,
            volume=volume,
            ema=ema,
            rsi=rsi,
            atr=atr,
            vwap=vwap,
            session=session,
            pattern=pattern,
            regime=regime,
            mtf=mtf,
            flow=flow,
            greeks=greeks,
            recent_bars=tuple(bars[-RECENT_BARS_KEPT:]),
        )

        logger.debug(
            "Features built",
            symbol=symbol,
            bar_time=now.isoformat(),
            bars=len(bars),
            regime=regime.value,
            flow_source=flow.source.value,
            gamma_source=greeks.source.value,
        )
        return features

    @staticmethod
    def _validate_bar(bar: Bar) -> None:
        """Validate bar data integrity."""
        prices = [bar.open, bar.high, bar.low, bar.close]
        for price in prices:
            if price is None or not math.isfinite(price):
                raise MalformedDataError(f"Invalid price value: {price}", expected_format="finite float")
            if price <= 0:
                raise MalformedDataError(f"Non-positive price: {price}")

        if bar.high < max(bar.open, bar.close):
            raise MalformedDataError("High price less than open/close")
        if bar.low > min(bar.open, bar.close):
            raise MalformedDataError("Low price greater than open/close")

        if bar.volume is None or not math.isfinite(bar.volume) or bar.volume < 0:
            raise MalformedDataError(f"Invalid volume value: {bar.volume}")

    @staticmethod
    def _ema_or_price(closes: list[float], period: int, price: float) -> float:
        value = calculate_ema(closes, period)
        return value if value is not None else price

    def _build_pattern(
        self,
        bars: list[Bar],
        bars_15m: list[Bar],
        today: list[Bar],
        price: float,
        rsi: float,
        ema: MovingAverages,
        atr: float,
        reference: Optional[ReferenceLevels]
    ) -> PatternFeatures:
        ind = self.config.indicators
        session_params = self.config.session

        # Breakouts use the 15m series once it has a few bars
        ref_bars = bars_15m if len(bars_15m) > 2 else bars
        lookback = ind.breakout_lookback
        breakout_bullish = breakout_bearish = False
        if len(ref_bars) > lookback:
            window = ref_bars[-(lookback + 1):-1]
            breakout_bullish = price > max(bar.high for bar in window)
            breakout_bearish = price < min(bar.low for bar in window)

        # Opening range from the first regular-hours bars of the day
        rth_today = [bar for bar in today if is_regular_hours(bar.time, session_params)]
        orb_high = orb_low = 0.0
        if len(rth_today) >= session_params.orb_bars:
            opening = rth_today[:session_params.orb_bars]
            orb_high = max(bar.high for bar in opening)
            orb_low = min(bar.low for bar in opening)

        day_high = max((bar.high for bar in today), default=0.0)
        day_low = min((bar.low for bar in today), default=0.0)

        premarket = [bar for bar in today if _is_premarket(bar, session_params)]
        premarket_high = max(bar.high for bar in premarket) if premarket else None
        premarket_low = min(bar.low for bar in premarket) if premarket else None

        prior_high, prior_low, prior_close = self._prior_day(bars, today)

        if reference is not None:
            premarket_high = reference.premarket_high if reference.premarket_high is not None else premarket_high
            premarket_low = reference.premarket_low if reference.premarket_low is not None else premarket_low
            prior_high = reference.prior_day_high if reference.prior_day_high is not None else prior_high
            prior_low = reference.prior_day_low if reference.prior_day_low is not None else prior_low

        patience = detect_patience_candle(bars, atr, self.config.patience)

        return PatternFeatures(
            breakout_bullish=breakout_bullish,
            breakout_bearish=breakout_bearish,
            mean_reversion_long=rsi < ind.mean_reversion_oversold,
            mean_reversion_short=rsi > ind.mean_reversion_overbought,
            trend_continuation_long=ema.ema8 > ema.ema21 > ema.ema50,
            trend_continuation_short=ema.ema8 < ema.ema21 < ema.ema50,
            orb_high=orb_high,
            orb_low=orb_low,
            day_high=day_high,
            day_low=day_low,
            premarket_high=premarket_high,
            premarket_low=premarket_low,
            prior_day_high=prior_high,
            prior_day_low=prior_low,
            prior_day_close=prior_close,
            patience_candle=patience.detected,
        )

    def _prior_day(
        self,
        bars: list[Bar],
        today: list[Bar]
    ) -> tuple[Optional[float], Optional[float], Optional[float]]:
        """High, low and close of the most recent session day before today."""
        tz = session_timezone(self.config.session)
        first_today = today[0].time if today else None
        earlier = [bar for bar in bars if first_today is None or bar.time < first_today]
        if not earlier:
            return None, None, None

        prior_day = earlier[-1].time.astimezone(tz).date()
        prior = [bar for bar in earlier if bar.time.astimezone(tz).date() == prior_day]
        return (
            max(bar.high for bar in prior),
            min(bar.low for bar in prior),
            prior[-1].close,
        )
