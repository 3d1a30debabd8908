"""
Traffic Guard Core Processors

Public exports for signal resolution.
"""

from core.processors.ip_reputation import IpReputationResolver, ReputationLookupError

__all__ = [
    "IpReputationResolver",
    "ReputationLookupError",
]
