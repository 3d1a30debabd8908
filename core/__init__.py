"""
Traffic Guard Core

Central module exports for the ad-traffic fraud classifier.
"""

from core.cache import ReputationCache
from core.classifier import FraudClassifier

__all__ = [
    "FraudClassifier",
    "ReputationCache",
]
