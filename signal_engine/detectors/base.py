"""
Opportunity detector framework.

A detector is an immutable record: a hard gate plus a weighted list of score
factors. Detectors are stateless and independent of each other, so a feature
snapshot can be evaluated against any number of them in any order.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from signal_engine.data.models import OptionsChainData
from signal_engine.errors import DataQualityError, DetectorEvaluationError
from signal_engine.models.enums import AssetClass, Direction
from signal_engine.models.features import SymbolFeatures
from signal_engine.models.signals import DetectionResult

GateFn = Callable[[SymbolFeatures, Optional[OptionsChainData]], bool]
ScoreFn = Callable[[SymbolFeatures, Optional[OptionsChainData]], float]

INDEX_SYMBOLS = frozenset({"SPX", "NDX", "$SPX", "$NDX"})
ETF_SYMBOLS = frozenset({"SPY", "QQQ", "IWM", "DIA", "XLF", "XLE", "XLK", "XLV", "XLI", "XLP"})
ALL_ASSET_CLASSES = (AssetClass.INDEX, AssetClass.EQUITY_ETF, AssetClass.STOCK)


@dataclass(frozen=True)
class ScoreFactor:
    """Named, weighted 0-100 scoring function."""
    name: str
    weight: float
    evaluate: ScoreFn


@dataclass(frozen=True)
class OpportunityDetector:
    """A named, versioned gating and scoring rule."""
    type: str
    direction: Direction
    asset_classes: tuple[AssetClass, ...]
    requires_options_data: bool
    detect: GateFn
    score_factors: tuple[ScoreFactor, ...]
    ideal_timeframe: str = "5m"
    version: str = "1.0.0"

    def applies_to(self, asset_class: AssetClass) -> bool:
        return asset_class in self.asset_classes

    @property
    def total_weight(self) -> float:
        return sum(factor.weight for factor in self.score_factors)

    def detect_with_score(
        self,
        features: SymbolFeatures,
        options_data: Optional[OptionsChainData] = None
    ) -> DetectionResult:
        """
        Evaluate the gate, then the score factors if the gate passes.

        Factors are never evaluated for a detector that does not fire.

        Raises:
            DataQualityError: Propagated unchanged from the gate or a factor
            DetectorEvaluationError: The gate or a factor raised anything else
        """
        try:
            fired = self.detect(features, options_data)
        except DataQualityError:
            raise
        except Exception as e:
            raise DetectorEvaluationError(
                f"Gate failed for {self.type}: {str(e)}",
                detector_type=self.type
            )
        if not fired:
            return DetectionResult.not_detected()

        score, factor_scores = calculate_composite_score(
            self.score_factors, features, options_data, detector_type=self.type
        )
        return DetectionResult(
            detected=True,
            base_score=score,
            factor_scores=factor_scores,
            confidence=score,
        )


def clamp_score(value: float) -> float:
    return min(100.0, max(0.0, value))


def calculate_composite_score(
    factors: Iterable[ScoreFactor],
    features: SymbolFeatures,
    options_data: Optional[OptionsChainData] = None,
    detector_type: Optional[str] = None
) -> tuple[float, dict[str, float]]:
    """
    Weighted average of clamped factor scores.

    Returns:
        (score in 0-100, clamped score per factor name)

    Raises:
        DetectorEvaluationError: A factor raised; names the failing factor
    """
    weighted_sum = 0.0
    total_weight = 0.0
    factor_scores = {}

    for factor in factors:
        try:
            score = clamp_score(factor.evaluate(features, options_data))
        except DataQualityError:
            raise
        except Exception as e:
            raise DetectorEvaluationError(
                f"Score factor {factor.name} failed: {str(e)}",
                detector_type=detector_type,
                factor_name=factor.name
            )
        factor_scores[factor.name] = score
        weighted_sum += score * factor.weight
        total_weight += factor.weight

    base_score = weighted_sum / total_weight if total_weight > 0 else 0.0
    return clamp_score(base_score), factor_scores


def create_detector(
    type: str,
    direction: Direction,
    asset_classes: Iterable[AssetClass],
    requires_options_data: bool,
    detect: GateFn,
    score_factors: Iterable[ScoreFactor],
    ideal_timeframe: str = "5m",
    version: str = "1.0.0"
) -> OpportunityDetector:
    """Build an immutable detector record."""
    return OpportunityDetector(
        type=type,
        direction=direction,
        asset_classes=tuple(asset_classes),
        requires_options_data=requires_options_data,
        detect=detect,
        score_factors=tuple(score_factors),
        ideal_timeframe=ideal_timeframe,
        version=version,
    )


def get_asset_class(symbol: str) -> AssetClass:
    """Classify a symbol as index, equity ETF or single stock."""
    upper = symbol.upper()
    if upper in INDEX_SYMBOLS:
        return AssetClass.INDEX
    if upper in ETF_SYMBOLS:
        return AssetClass.EQUITY_ETF
    return AssetClass.STOCK


def should_run_detector(features: SymbolFeatures) -> bool:
    """Detectors run in regular hours, or off-hours when explicitly allowed."""
    return features.session.is_regular_hours or features.session.allow_off_hours
