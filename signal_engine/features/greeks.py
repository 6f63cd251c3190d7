"""Gamma/greeks risk classification from dealer positioning"""

from typing import Optional

from signal_engine.models.features import ContextTier, GreeksFeatures
from signal_engine.models.gamma import GammaContext, GammaImbalance, ImbalanceStrength


def classify_gamma_risk(context: Optional[GammaContext]) -> str:
    """
    Three-level gamma risk from dealer positioning.

    Short gamma (negative imbalance) with strong or moderate strength is high
    risk, strong long gamma is low risk, everything else and a missing
    context is medium.
    """
    if context is None:
        return "medium"

    summary = context.summary
    if summary.imbalance == GammaImbalance.NEGATIVE and summary.imbalance_strength in (
        ImbalanceStrength.STRONG, ImbalanceStrength.MODERATE
    ):
        return "high"
    if summary.imbalance == GammaImbalance.POSITIVE and summary.imbalance_strength == ImbalanceStrength.STRONG:
        return "low"
    return "medium"


def build_greeks(context: Optional[GammaContext]) -> GreeksFeatures:
    if context is None:
        return GreeksFeatures()

    return GreeksFeatures(
        gamma_risk=classify_gamma_risk(context),
        dealer_positioning=context.summary.imbalance.value,
        source=ContextTier.LIVE,
    )
