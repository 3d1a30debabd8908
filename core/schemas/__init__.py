"""
Traffic Guard Schemas

Public exports for input and output Pydantic models.
"""

# Input schemas - client signals
from core.schemas.inputs import (
    BehaviorData,
    DeviceInfo,
    DeviceType,
    Fingerprint,
    HardwareInfo,
    ScreenInfo,
)

# Input schemas - request envelopes
from core.schemas.inputs import (
    FraudCheckRequest,
    IpListRequest,
    ListAction,
    ListType,
)

# Output schemas
from core.schemas.outputs import (
    Classification,
    FraudCheckResponse,
    FraudDetails,
    FraudResult,
    IpReputationResult,
)

__all__ = [
    # Input - Enums
    "DeviceType",
    "ListType",
    "ListAction",
    # Input - Signals
    "DeviceInfo",
    "ScreenInfo",
    "HardwareInfo",
    "Fingerprint",
    "BehaviorData",
    # Input - Requests
    "FraudCheckRequest",
    "IpListRequest",
    # Output
    "Classification",
    "IpReputationResult",
    "FraudDetails",
    "FraudResult",
    "FraudCheckResponse",
]
