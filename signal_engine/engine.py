"""
Composite signal engine.

Orchestrates one scan per symbol:
Features → Detectors → Style Scores → Data Confidence → Level-Aware Risk → Thresholds → Dedup → Signal
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterable, Optional

import structlog

from .config.defaults import EngineConfig, get_default_config
from .data.models import OptionsChainData
from .detectors import OpportunityDetector, build_detectors, get_asset_class
from .errors import (
    ContextProviderError,
    DataQualityError,
    DetectorEvaluationError,
    GracefulDegradationError,
    InsufficientDataError,
    MalformedDataError,
    StaleDataError,
    SystemFailureError,
)
from .features.context import OptionsDataProvider
from .gamma import ensure_fresh, get_gamma_score_modifier, options_data_from_context
from .logging.config import get_detector_logger, log_detector_decision
from .models.enums import STYLE_TRADE_CLASS, AssetClass, Direction
from .models.features import SymbolFeatures
from .models.gamma import GammaContext
from .models.levels import KeyLevel, ReferenceLevels
from .models.signals import CandidateSignal, CompositeSignal, ScanResult
from .risk import (
    LevelsInput,
    calculate_level_aware_stop,
    calculate_level_aware_targets,
    normalize_levels,
    reference_levels_from_features,
)
from .signals.confidence import (
    REASON_LOW_CONFIDENCE,
    ConfidenceResult,
    apply_confidence_to_score,
    calculate_snapshot_confidence,
    confidence_level,
    should_filter_low_confidence,
)
from .signals.deduplication import SignalDeduplication
from .signals.styles import STYLES, StyleModifierResult, calculate_style_modifiers, calculate_style_scores
from .signals.thresholds import Thresholds, passes_thresholds, resolve_thresholds
from .utils.time import bar_time_key, ensure_market_time, expires_at

logger = structlog.get_logger(__name__)
detector_logger = get_detector_logger(__name__)

REASON_NO_DETECTOR = "no_detector_fired"
REASON_COOLDOWN = "cooldown"
REASON_RATE_LIMIT = "max_signals_per_hour"
REASON_DUPLICATE = "duplicate_bar"


@dataclass(frozen=True)
class ScanRequest:
    """Inputs for scanning one symbol."""
    symbol: str
    features: SymbolFeatures
    key_levels: LevelsInput = ()
    options_data: Optional[OptionsChainData] = None
    gamma_context: Optional[GammaContext] = None


@dataclass(frozen=True)
class _PricedCandidate:
    candidate: CandidateSignal
    entry: float
    stop: float
    targets: tuple[float, float, float]
    risk_reward: float
    stop_confidence: str
    stop_level_label: str
    warnings: tuple[str, ...]


class CompositeSignalEngine:
    """
    Scans symbols with the detector registry and emits priced signals.

    The only state held across scans is the optional deduplication record.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        detectors: Optional[Iterable[OpportunityDetector]] = None,
        options_provider: Optional[OptionsDataProvider] = None,
        deduplication: Optional[SignalDeduplication] = None
    ) -> None:
        self.config = config or get_default_config()
        if detectors is None:
            detectors = build_detectors(self.config.scanner)
        self.detectors = tuple(detectors)
        self.options_provider = options_provider
        self.deduplication = deduplication

        logger.info(
            "Composite signal engine initialized",
            detectors=len(self.detectors),
            deduplication=deduplication is not None,
        )

    def scan_symbol(
        self,
        symbol: str,
        features: SymbolFeatures,
        key_levels: LevelsInput = (),
        options_data: Optional[OptionsChainData] = None,
        gamma_context: Optional[GammaContext] = None
    ) -> ScanResult:
        """
        Scan one symbol snapshot.

        Args:
            symbol: Symbol being scanned
            features: Feature snapshot for the symbol
            key_levels: KeyLevel list or ReferenceLevels; levels carried by the
                snapshot fill any gaps
            options_data: Options-aware detector inputs
            gamma_context: Dealer positioning context for style modifiers

        Returns:
            ScanResult with the emitted signal, or the reason nothing was emitted
        """
        try:
            return self._scan(symbol, features, key_levels, options_data, gamma_context)

        except DataQualityError as e:
            logger.warning(
                "Data quality issue during scan",
                symbol=symbol,
                error=str(e),
                error_type=type(e).__name__,
                context=getattr(e, 'context', {})
            )
            return ScanResult(symbol=symbol, reason=f"data_quality: {e}")

        except SystemFailureError as e:
            logger.error(
                "System failure during scan",
                symbol=symbol,
                error=str(e),
                error_type=type(e).__name__,
                context=getattr(e, 'context', {})
            )
            return ScanResult(symbol=symbol, reason=f"system_failure: {e}")

        except Exception as e:
            logger.error(
                "Unexpected error during scan",
                symbol=symbol,
                error=str(e),
                error_type=type(e).__name__
            )
            return ScanResult(symbol=symbol, reason=f"error: {e}")

    def scan_many(self, items: Iterable[ScanRequest]) -> list[ScanResult]:
        """Scan each request independently, in order."""
        return [
            self.scan_symbol(
                item.symbol,
                item.features,
                key_levels=item.key_levels,
                options_data=item.options_data,
                gamma_context=item.gamma_context,
            )
            for item in items
        ]

    def _scan(
        self,
        symbol: str,
        features: SymbolFeatures,
        key_levels: LevelsInput,
        options_data: Optional[OptionsChainData],
        gamma_context: Optional[GammaContext]
    ) -> ScanResult:
        price = features.price.current
        if price is None or not math.isfinite(price):
            raise MalformedDataError(f"Invalid price value for {symbol}: {price}", expected_format="finite float")
        if price <= 0:
            raise InsufficientDataError(
                f"No usable price for {symbol}",
                required_count=1,
                available_count=0,
            )

        levels = self._levels(features, key_levels)
        now = ensure_market_time(features.time)
        asset_class = get_asset_class(symbol)

        if gamma_context is not None:
            try:
                gamma_context = ensure_fresh(gamma_context, now)
            except StaleDataError as e:
                logger.info(
                    "Ignoring stale gamma context",
                    symbol=symbol,
                    age_minutes=e.age_minutes,
                    threshold_minutes=e.threshold_minutes
                )
                gamma_context = None

        if options_data is None:
            options_data = self._resolve_options_data(symbol, asset_class, gamma_context)

        style_modifiers = calculate_style_modifiers(features)
        candidates = self._detect(symbol, features, asset_class, options_data, gamma_context, style_modifiers)
        if not candidates:
            return ScanResult(symbol=symbol, reason=REASON_NO_DETECTOR)

        # First registered wins ties
        best = max(candidates, key=lambda c: c.style_scores.recommended_score)
        confidence = None
        if self.config.scanner.confidence_scoring:
            confidence = calculate_snapshot_confidence(features)
            message = should_filter_low_confidence(confidence, self.config.scanner.min_confidence)
            if message is not None:
                logger.debug(
                    "Candidate filtered",
                    symbol=symbol,
                    opportunity_type=best.detector_type,
                    reason=REASON_LOW_CONFIDENCE,
                    detail=message,
                )
                return ScanResult(symbol=symbol, candidates=tuple(candidates), reason=REASON_LOW_CONFIDENCE)
            best = self._with_confidence(best, confidence)

        priced = self._price(best, features, levels, options_data)

        thresholds = resolve_thresholds(self.config.scanner, features, best.detector_type)
        reason = self._threshold_failure(symbol, best, priced, thresholds)
        if reason is not None:
            return ScanResult(symbol=symbol, candidates=tuple(candidates), reason=reason)

        key = bar_time_key(symbol, now, best.detector_type)
        if self.deduplication is not None:
            reason = self._dedup_failure(symbol, best.detector_type, now, key)
            if reason is not None:
                logger.debug("Signal suppressed", symbol=symbol, opportunity_type=best.detector_type, reason=reason)
                return ScanResult(symbol=symbol, candidates=tuple(candidates), reason=reason)
            self.deduplication.add_signal(symbol, best.detector_type, now, key)

        gamma_reasoning = None
        if gamma_context is not None:
            gamma_reasoning = get_gamma_score_modifier(
                gamma_context, best.direction, best.style_scores.recommended
            ).reasoning

        scores = best.style_scores
        signal = CompositeSignal(
            symbol=symbol,
            direction=best.direction,
            opportunity_type=best.detector_type,
            detector_version=best.version,
            asset_class=asset_class,
            base_score=best.result.base_score,
            scalp_score=scores.scalp,
            day_trade_score=scores.day_trade,
            swing_score=scores.swing,
            recommended_style=scores.recommended,
            recommended_style_score=scores.recommended_score,
            confluence=dict(best.result.factor_scores),
            entry=priced.entry,
            stop=priced.stop,
            targets=priced.targets,
            risk_reward=priced.risk_reward,
            stop_confidence=priced.stop_confidence,
            stop_level_label=priced.stop_level_label,
            features=features,
            created_at=now,
            expires_at=expires_at(now, self.config.scanner.signal_ttl_minutes),
            bar_time_key=key,
            warnings=(
                priced.warnings + tuple(style_modifiers.warnings) + thresholds.warnings
                + self._confidence_warnings(confidence)
            ),
            gamma_reasoning=gamma_reasoning,
            size_multiplier=thresholds.size_multiplier,
            data_confidence=confidence.adjusted_confidence if confidence is not None else None,
        )

        logger.info(
            "Signal emitted",
            symbol=symbol,
            opportunity_type=signal.opportunity_type,
            direction=signal.direction.value,
            recommended_style=signal.recommended_style.value,
            style_score=round(signal.recommended_style_score, 1),
            risk_reward=round(signal.risk_reward, 2),
        )
        return ScanResult(symbol=symbol, signal=signal, candidates=tuple(candidates))

    def _resolve_options_data(
        self,
        symbol: str,
        asset_class: AssetClass,
        gamma_context: Optional[GammaContext]
    ) -> Optional[OptionsChainData]:
        """Provider data for indices, else inputs derived from the gamma context."""
        if self.options_provider is not None and asset_class == AssetClass.INDEX:
            try:
                options_data = self._fetch_options_data(symbol)
                if options_data is not None:
                    return options_data
            except GracefulDegradationError as e:
                logger.warning(
                    "Options data provider failed",
                    symbol=symbol,
                    error=str(e),
                    degraded_functionality=e.degraded_functionality,
                    fallback_strategy=e.fallback_strategy
                )

        if gamma_context is not None:
            return options_data_from_context(gamma_context)
        return None

    def _fetch_options_data(self, symbol: str) -> Optional[OptionsChainData]:
        try:
            return self.options_provider.get_options_data(symbol)  # type: ignore[union-attr]
        except Exception as e:
            raise ContextProviderError(
                f"Options data provider failed for {symbol}: {e}",
                provider="options",
                symbol=symbol,
                degraded_functionality="options_data",
                fallback_strategy="gamma_context",
            ) from e

    def _detect(
        self,
        symbol: str,
        features: SymbolFeatures,
        asset_class: AssetClass,
        options_data: Optional[OptionsChainData],
        gamma_context: Optional[GammaContext],
        style_modifiers: StyleModifierResult
    ) -> list[CandidateSignal]:
        candidates = []
        for detector in self.detectors:
            if not detector.applies_to(asset_class):
                continue
            if detector.requires_options_data and options_data is None:
                continue

            try:
                result = detector.detect_with_score(features, options_data)
            except DataQualityError as e:
                detector_logger.warning(
                    "Data quality issue evaluating detector",
                    symbol=symbol,
                    detector_type=detector.type,
                    error=str(e),
                    error_type=type(e).__name__,
                    context=getattr(e, 'context', {})
                )
                continue
            except DetectorEvaluationError as e:
                detector_logger.error(
                    "Detector evaluation failed",
                    symbol=symbol,
                    detector_type=e.detector_type,
                    factor_name=e.factor_name,
                    error=str(e)
                )
                continue
            except Exception as e:
                detector_logger.error(
                    "Unexpected error evaluating detector",
                    symbol=symbol,
                    detector_type=detector.type,
                    error=str(e),
                    error_type=type(e).__name__
                )
                continue

            if not result.detected:
                log_detector_decision(detector_logger, detector.type, False, symbol, "gate not met")
                continue

            gamma_modifiers = None
            if gamma_context is not None:
                gamma_modifiers = {
                    style: get_gamma_score_modifier(gamma_context, detector.direction, style).modifier
                    for style in STYLES
                }

            style_scores = calculate_style_scores(
                result.base_score,
                detector.type,
                features,
                gamma_modifiers=gamma_modifiers,
                style_modifiers=style_modifiers,
            )
            log_detector_decision(
                detector_logger,
                detector.type,
                True,
                symbol,
                "gate passed",
                context={
                    "base_score": round(result.base_score, 1),
                    "recommended_style": style_scores.recommended.value,
                    "style_score": round(style_scores.recommended_score, 1),
                },
            )
            candidates.append(CandidateSignal(
                detector_type=detector.type,
                direction=detector.direction,
                version=detector.version,
                result=result,
                style_scores=style_scores,
                ideal_timeframe=detector.ideal_timeframe,
            ))
        return candidates

    def _trade_direction(
        self,
        candidate: CandidateSignal,
        features: SymbolFeatures,
        options_data: Optional[OptionsChainData]
    ) -> Direction:
        """Side used for risk placement; neutral plays lean toward their magnet."""
        if candidate.direction != Direction.NEUTRAL:
            return candidate.direction

        price = features.price.current
        magnet = features.vwap.value
        if options_data is not None and options_data.max_gamma_strike:
            magnet = options_data.max_gamma_strike
        return Direction.SHORT if magnet and price > magnet else Direction.LONG

    def _price(
        self,
        candidate: CandidateSignal,
        features: SymbolFeatures,
        levels: list[KeyLevel],
        options_data: Optional[OptionsChainData]
    ) -> _PricedCandidate:
        entry = features.price.current
        direction = self._trade_direction(candidate, features, options_data)
        trade_class = STYLE_TRADE_CLASS[candidate.style_scores.recommended]

        stop = calculate_level_aware_stop(
            entry,
            direction,
            levels,
            features.atr,
            trade_class=trade_class,
            params=self.config.stops,
        )
        targets = calculate_level_aware_targets(entry, direction, levels, stop.stop_distance)

        risk = abs(entry - stop.recommended_stop)
        risk_reward = abs(targets.t2.price - entry) / risk if risk > 0 else 0.0

        return _PricedCandidate(
            candidate=candidate,
            entry=entry,
            stop=stop.recommended_stop,
            targets=targets.prices,
            risk_reward=risk_reward,
            stop_confidence=stop.confidence,
            stop_level_label=stop.level_label,
            warnings=stop.warnings,
        )

    @staticmethod
    def _levels(features: SymbolFeatures, key_levels: LevelsInput) -> list[KeyLevel]:
        if isinstance(key_levels, ReferenceLevels):
            return normalize_levels(reference_levels_from_features(features, key_levels))
        supplied = list(key_levels or ())
        misplaced = [type(level).__name__ for level in supplied if not isinstance(level, KeyLevel)]
        if misplaced:
            raise MalformedDataError(
                f"Key levels must be KeyLevel entries or ReferenceLevels, got {misplaced[0]}",
                expected_format="KeyLevel or ReferenceLevels",
            )
        if supplied:
            return supplied
        return normalize_levels(reference_levels_from_features(features))

    @staticmethod
    def _with_confidence(candidate: CandidateSignal, confidence: ConfidenceResult) -> CandidateSignal:
        """Candidate with its base and style scores scaled by data confidence."""
        def scaled(score: float) -> float:
            return apply_confidence_to_score(score, confidence).adjusted_score

        scores = candidate.style_scores
        return replace(
            candidate,
            result=replace(candidate.result, base_score=scaled(candidate.result.base_score)),
            style_scores=replace(
                scores,
                scalp=scaled(scores.scalp),
                day_trade=scaled(scores.day_trade),
                swing=scaled(scores.swing),
                recommended_score=scaled(scores.recommended_score),
            ),
        )

    @staticmethod
    def _confidence_warnings(confidence: Optional[ConfidenceResult]) -> tuple[str, ...]:
        if confidence is None or confidence.multiplier >= 1.0:
            return ()
        level = confidence_level(confidence.adjusted_confidence)
        return (f"Data confidence {level}: {confidence.summary}",) + confidence.warnings

    def _threshold_failure(
        self,
        symbol: str,
        candidate: CandidateSignal,
        priced: _PricedCandidate,
        thresholds: Thresholds
    ) -> Optional[str]:
        check = passes_thresholds(
            thresholds,
            candidate.result.base_score,
            candidate.style_scores.recommended_score,
            priced.risk_reward,
        )
        if check.passed:
            return None

        logger.debug(
            "Candidate filtered",
            symbol=symbol,
            opportunity_type=candidate.detector_type,
            reason=check.reason,
            detail=check.detail,
            thresholds=thresholds.label,
            base_score=candidate.result.base_score,
            style_score=candidate.style_scores.recommended_score,
            risk_reward=priced.risk_reward,
        )
        return check.reason

    def _dedup_failure(self, symbol: str, opportunity_type: str, now: datetime, key: str) -> Optional[str]:
        params = self.config.scanner
        if self.deduplication.is_in_cooldown(symbol, opportunity_type, now, params.cooldown_minutes):
            return REASON_COOLDOWN
        if self.deduplication.exceeds_max_signals_per_hour(symbol, now, params.max_signals_per_symbol_per_hour):
            return REASON_RATE_LIMIT
        if self.deduplication.is_duplicate(key):
            return REASON_DUPLICATE
        return None

    def get_runtime_stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {"detectors": len(self.detectors)}
        if self.deduplication is not None:
            stats["deduplication"] = self.deduplication.get_stats()
        return stats
