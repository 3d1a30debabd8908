"""
Traffic Guard Input Schemas

This module defines Pydantic V2 models for:
- Client-collected device fingerprint (Fingerprint)
- Client-collected interaction telemetry (BehaviorData)
- The /fraud-check request envelope and admin IP-list requests

Attributes are snake_case; JSON uses the browser client's camelCase
names through an alias generator. Both spellings are accepted.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting camelCase or snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Enums
# =============================================================================

class DeviceType(str, Enum):
    """Device class inferred client-side from UA and platform."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    BOT = "bot"
    UNKNOWN = "unknown"


class ListType(str, Enum):
    """Manual override list membership."""
    ALLOW = "allow"
    DENY = "deny"


class ListAction(str, Enum):
    """Admin operation on the override lists."""
    ADD = "add"
    REMOVE = "remove"


# =============================================================================
# Fingerprint Models
# =============================================================================

class DeviceInfo(CamelModel):
    """Device identification and integrity flags."""
    type: DeviceType = Field(..., description="Inferred device class")
    is_fake_mobile: bool = Field(
        ...,
        description="Mobile UA paired with a desktop-class platform (emulation)"
    )
    is_automated: bool = Field(..., description="navigator.webdriver reported true")
    is_headless: bool = Field(..., description="UA matches a headless-browser signature")
    is_mobile: bool = False
    is_tablet: bool = False
    is_desktop: bool = False
    os: str = ""
    os_version: str = ""
    browser: str = ""
    browser_version: str = ""
    platform: str = ""


class ScreenInfo(CamelModel):
    """Screen metrics as reported by window.screen."""
    width: int = 0
    height: int = 0
    avail_width: int = 0
    avail_height: int = 0
    color_depth: int = 0
    pixel_ratio: float = 1.0


class HardwareInfo(CamelModel):
    """Hardware capabilities as reported by navigator."""
    cores: int = 0
    memory: Optional[float] = None
    max_touch_points: int = 0
    has_touch: bool = False


class Fingerprint(CamelModel):
    """
    Client-observed device signals, captured once per session.

    Only the device flags and type feed classification. The remaining
    identity signals are persisted for audit only.
    """
    device: DeviceInfo = Field(..., description="Device identification")
    screen: ScreenInfo = Field(..., description="Screen metrics")
    hardware: HardwareInfo = Field(..., description="Hardware capabilities")

    user_agent: str = Field(..., description="Raw user agent string")
    language: str = Field(..., description="Primary browser language")
    timezone: str = Field(..., description="IANA timezone name")
    languages: List[str] = Field(default_factory=list)
    timezone_offset: int = 0

    canvas_hash: str = ""
    webgl_vendor: str = ""
    webgl_renderer: str = ""
    webgl_hash: str = ""

    plugins: List[str] = Field(default_factory=list)
    mime_types: List[str] = Field(default_factory=list)
    do_not_track: Optional[str] = None
    cookies_enabled: bool = True

    collected_at: Optional[float] = Field(None, description="Collection time in ms")


# =============================================================================
# Behavior Telemetry
# =============================================================================

class BehaviorData(CamelModel):
    """
    Interaction telemetry accumulated over the observation window.
    All counters start at zero.
    """
    # Mouse (desktop)
    mouse_movements: int = Field(..., ge=0, description="Pointer-move events")
    mouse_clicks: int = Field(0, ge=0)
    mouse_distance: float = Field(0.0, ge=0, description="Pixels traveled")

    # Touch (mobile)
    touch_events: int = Field(..., ge=0, description="Touch events")
    touch_taps: int = Field(0, ge=0)
    touch_swipes: int = Field(0, ge=0)

    # Scroll
    scroll_events: int = Field(..., ge=0, description="Scroll events")
    scroll_distance: float = Field(0.0, ge=0)

    # Keyboard
    key_presses: int = Field(0, ge=0)

    # Timing (ms)
    active_time: float = Field(0.0, ge=0, description="Span between first and last event")
    total_time: float = Field(0.0, ge=0, description="Span since observation start")
    last_event_time: float = 0.0

    # Session
    session_id: str = ""
    page_url: str = ""


# =============================================================================
# Request Envelopes
# =============================================================================

class FraudCheckRequest(CamelModel):
    """
    Inbound /fraud-check payload.
    When ip is absent the transport derives it from forwarding headers.
    """
    fingerprint: Fingerprint
    behavior: BehaviorData
    ip: Optional[str] = Field(None, description="Client IP override")
    timestamp: Optional[float] = None


class IpListRequest(CamelModel):
    """Admin request to add or remove a manual override."""
    ip: str = Field(..., min_length=1, description="IP address")
    action: ListAction = ListAction.ADD
    list_type: Optional[ListType] = Field(None, description="Required for add")
    reason: Optional[str] = None
    created_by: str = "admin"
    expires_in: Optional[int] = Field(None, gt=0, description="Entry TTL in seconds")
