"""Market data models handed over by external providers."""

from .models import (
    Bar,
    FlowClassification,
    FlowSide,
    OptionsChainData,
    OptionsFlowRecord,
    OptionsOpenInterest,
)

__all__ = [
    "Bar",
    "FlowClassification",
    "FlowSide",
    "OptionsChainData",
    "OptionsFlowRecord",
    "OptionsOpenInterest",
]
