"""
Traffic Guard Output Schemas

This module defines Pydantic V2 models for the IP reputation record,
the engine verdict (FraudResult) and the transport response envelope.
"""

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.schemas.inputs import CamelModel, DeviceType


# =============================================================================
# Enums
# =============================================================================

class Classification(str, Enum):
    """Fraud-risk tier."""
    GOOD = "GOOD"
    WARN = "WARN"
    BAD = "BAD"


# =============================================================================
# IP Reputation
# =============================================================================

class IpReputationResult(BaseModel):
    """
    Resolved trust classification for one IP address.

    Facets are independent; conflicts are settled by engine priority.
    Instances are immutable once returned.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    ip: str
    is_vpn: bool = False
    is_datacenter: bool = False
    is_mobile_carrier: bool = False
    is_proxy: bool = False
    is_tor: bool = False

    asn: Optional[int] = None
    org: str = ""
    isp: str = ""

    country: str = ""
    country_code: str = ""
    region: str = ""
    city: str = ""

    cached: bool = False
    cached_at: Optional[float] = None

    @classmethod
    def unknown(cls, ip: str) -> "IpReputationResult":
        """Neutral result: no signal in any direction."""
        return cls(ip=ip)


# =============================================================================
# Fraud Result
# =============================================================================

class FraudDetails(CamelModel):
    """Diagnostic context attached to a verdict."""
    ip_reputation: Optional[IpReputationResult] = None
    device_type: Optional[DeviceType] = None
    behavior_score: Optional[int] = None


class FraudResult(CamelModel):
    """
    The engine verdict for one request.

    score: 0 = certainly fraudulent, 100 = certainly legitimate.
    flags: every diagnostic tag raised along the executed rule path.
    """
    classification: Classification = Field(..., description="GOOD, WARN or BAD")
    score: int = Field(..., ge=0, le=100, description="Trust score")
    reason: str = Field(..., description="Explanation of the controlling rule")
    flags: List[str] = Field(default_factory=list)
    processing_time: float = Field(0.0, ge=0, description="Classification time in ms")
    timestamp: float = Field(default_factory=lambda: time.time() * 1000.0)
    details: FraudDetails = Field(default_factory=FraudDetails)


# =============================================================================
# Response Envelope
# =============================================================================

class FraudCheckResponse(CamelModel):
    """Transport envelope for /fraud-check."""
    success: bool
    result: Optional[FraudResult] = None
    error: Optional[str] = None
    request_id: str
