"""Detector outputs and the composite signal handed to collaborators"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .enums import AssetClass, Direction, TradingStyle
from .features import SymbolFeatures


@dataclass(frozen=True)
class DetectionResult:
    """Gate plus weighted score output of one detector."""
    detected: bool
    base_score: float = 0.0
    factor_scores: dict[str, float] = field(default_factory=dict)
    confidence: float = 0.0

    @classmethod
    def not_detected(cls) -> "DetectionResult":
        return cls(detected=False)


@dataclass(frozen=True)
class StyleScores:
    scalp: float
    day_trade: float
    swing: float
    recommended: TradingStyle
    recommended_score: float

    def score_for(self, style: TradingStyle) -> float:
        return {
            TradingStyle.SCALP: self.scalp,
            TradingStyle.DAY_TRADE: self.day_trade,
            TradingStyle.SWING: self.swing,
        }[style]


@dataclass(frozen=True)
class CandidateSignal:
    """A fired detector with its style scores, before pricing."""
    detector_type: str
    direction: Direction
    version: str
    result: DetectionResult
    style_scores: StyleScores
    ideal_timeframe: str = "5m"


@dataclass(frozen=True)
class CompositeSignal:
    """Scored, priced opportunity emitted by the engine."""
    symbol: str
    direction: Direction
    opportunity_type: str
    detector_version: str
    asset_class: AssetClass
    base_score: float
    scalp_score: float
    day_trade_score: float
    swing_score: float
    recommended_style: TradingStyle
    recommended_style_score: float
    confluence: dict[str, float]
    entry: float
    stop: float
    targets: tuple[float, float, float]
    risk_reward: float
    stop_confidence: str
    stop_level_label: str
    features: SymbolFeatures
    created_at: datetime
    expires_at: datetime
    bar_time_key: str
    warnings: tuple[str, ...] = ()
    gamma_reasoning: Optional[str] = None
    size_multiplier: float = 1.0                # Position size scaling from the thresholds in force
    data_confidence: Optional[float] = None     # 0-100, set when confidence scoring is enabled

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe mapping for persistence/alerting collaborators."""
        return {
            "symbol": self.symbol,
            "direction": self.direction.value,
            "opportunity_type": self.opportunity_type,
            "detector_version": self.detector_version,
            "asset_class": self.asset_class.value,
            "base_score": self.base_score,
            "scalp_score": self.scalp_score,
            "day_trade_score": self.day_trade_score,
            "swing_score": self.swing_score,
            "recommended_style": self.recommended_style.value,
            "recommended_style_score": self.recommended_style_score,
            "confluence": dict(self.confluence),
            "entry": self.entry,
            "stop": self.stop,
            "targets": list(self.targets),
            "risk_reward": self.risk_reward,
            "stop_confidence": self.stop_confidence,
            "stop_level_label": self.stop_level_label,
            "warnings": list(self.warnings),
            "gamma_reasoning": self.gamma_reasoning,
            "size_multiplier": self.size_multiplier,
            "data_confidence": self.data_confidence,
            "features": self.features.to_dict(),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "bar_time_key": self.bar_time_key,
        }


@dataclass(frozen=True)
class ScanResult:
    """Outcome of scanning one symbol."""
    symbol: str
    signal: Optional[CompositeSignal] = None
    candidates: tuple[CandidateSignal, ...] = ()
    reason: Optional[str] = None

    @property
    def emitted(self) -> bool:
        return self.signal is not None
