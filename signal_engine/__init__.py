"""
Signal Engine - Composite Market-Signal Detection Engine

Converts raw price bars and auxiliary options-market context into scored,
risk-bounded trade opportunities. Feature synthesis, structure levels and
dealer positioning feed a registry of gating/scoring detectors whose best
candidate is priced with level-aware stops and targets.
"""

__version__ = "0.1.0"
__author__ = "Signal Engine Team"
