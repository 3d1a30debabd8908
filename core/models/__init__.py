"""
Traffic Guard Core Models

Deterministic behavior scoring rules.
"""

from core.models.behavior import BehaviorAnalysis, BehaviorAnalyzer

__all__ = [
    "BehaviorAnalysis",
    "BehaviorAnalyzer",
]
