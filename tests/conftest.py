"""
Traffic Guard Test Suite - Shared Pytest Fixtures

This conftest.py provides fixtures for all test categories including:
- Fingerprint / behavior payload factories
- Fake upstream IP lookup service (httpx.MockTransport)
- Reputation cache with a controllable clock
- Redis connection and cleanup for repository tests

Usage:
    pytest tests/ -v -s
"""

import os
import threading
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from core.cache import ReputationCache
from core.processors.ip_reputation import IpReputationResolver
from core.schemas.inputs import BehaviorData, Fingerprint
from core.schemas.outputs import FraudResult
from persistence.ip_list_repository import IpListRepository


# =============================================================================
# Path Helpers
# =============================================================================

def get_project_root() -> str:
    """Get the absolute path to the project root."""
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


# =============================================================================
# Payload Factories
# =============================================================================

DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
MOBILE_UA = (
    "Mozilla/5.0 (Linux; Android 13; SM-S918B) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
FACEBOOK_UA = (
    "Mozilla/5.0 (Linux; Android 13; SM-S918B) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36 "
    "[FB_IAB/FB4A;FBAV/440.0.0.0;]"
)


def fingerprint_payload(
    device_type: str = "desktop",
    user_agent: Optional[str] = None,
    **device_overrides: Any,
) -> Dict[str, Any]:
    """camelCase fingerprint as the browser collector sends it."""
    is_touch = device_type in ("mobile", "tablet")
    device = {
        "type": device_type,
        "isMobile": device_type == "mobile",
        "isTablet": device_type == "tablet",
        "isDesktop": device_type == "desktop",
        "isFakeMobile": False,
        "isAutomated": False,
        "isHeadless": False,
        "os": "Android" if is_touch else "Windows",
        "osVersion": "13" if is_touch else "10",
        "browser": "Chrome",
        "browserVersion": "120.0",
        "platform": "Linux armv8l" if is_touch else "Win32",
    }
    device.update(device_overrides)

    return {
        "device": device,
        "screen": {
            "width": 412 if is_touch else 1920,
            "height": 915 if is_touch else 1080,
            "availWidth": 412 if is_touch else 1920,
            "availHeight": 915 if is_touch else 1040,
            "colorDepth": 24,
            "pixelRatio": 2.625 if is_touch else 1.0,
        },
        "hardware": {
            "cores": 8,
            "memory": 8,
            "maxTouchPoints": 5 if is_touch else 0,
            "hasTouch": is_touch,
        },
        "userAgent": user_agent or (MOBILE_UA if is_touch else DESKTOP_UA),
        "language": "en-US",
        "languages": ["en-US", "en"],
        "timezone": "Asia/Kolkata",
        "timezoneOffset": -330,
        "canvasHash": "a1b2c3",
        "cookiesEnabled": True,
    }


def behavior_payload(
    mouse_movements: int = 0,
    touch_events: int = 0,
    scroll_events: int = 0,
    **extra: Any,
) -> Dict[str, Any]:
    """camelCase behavior telemetry."""
    payload = {
        "mouseMovements": mouse_movements,
        "touchEvents": touch_events,
        "scrollEvents": scroll_events,
        "activeTime": 4200.0,
        "totalTime": 5000.0,
        "sessionId": "sess_test",
        "pageUrl": "https://publisher.example/article",
    }
    payload.update(extra)
    return payload


def make_fingerprint(device_type: str = "desktop", **kwargs: Any) -> Fingerprint:
    return Fingerprint.model_validate(fingerprint_payload(device_type, **kwargs))


def make_behavior(**kwargs: Any) -> BehaviorData:
    return BehaviorData.model_validate(behavior_payload(**kwargs))


def ipapi_payload(
    ip: str,
    asn: Optional[str] = "AS24560",
    org: str = "Bharti Airtel Ltd.",
    country_code: str = "IN",
) -> Dict[str, Any]:
    """Response body in the ipapi.co JSON shape."""
    return {
        "ip": ip,
        "city": "Mumbai",
        "region": "Maharashtra",
        "country": country_code,
        "country_name": "India" if country_code == "IN" else "United States",
        "country_code": country_code,
        "asn": asn,
        "org": org,
    }


@pytest.fixture
def fingerprint_factory() -> Callable[..., Fingerprint]:
    return make_fingerprint


@pytest.fixture
def behavior_factory() -> Callable[..., BehaviorData]:
    return make_behavior


# =============================================================================
# Clock & Cache Fixtures
# =============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> ReputationCache:
    """Small cache on the fake clock."""
    return ReputationCache(max_size=100, default_ttl=3600, clock=clock)


# =============================================================================
# Fake Upstream
# =============================================================================

class FakeIpApi:
    """
    Programmable stand-in for the IP lookup provider.

    responses maps an IP to either a JSON dict (served with 200) or an
    httpx.Response. Unknown IPs get a residential ISP answer.
    """

    def __init__(self) -> None:
        self.responses: Dict[str, Any] = {}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        ip = request.url.path.strip("/").split("/")[0]
        with self._lock:
            self.calls.append(ip)

        answer = self.responses.get(ip)
        if isinstance(answer, httpx.Response):
            return answer
        if answer is None:
            answer = ipapi_payload(ip, asn="AS45271", org="Hathway Cable and Datacom")
        return httpx.Response(200, json=answer)

    def calls_for(self, ip: str) -> int:
        return self.calls.count(ip)


@pytest.fixture
def fake_ipapi() -> FakeIpApi:
    return FakeIpApi()


@pytest.fixture
def ip_lists() -> IpListRepository:
    """Process-local override store."""
    return IpListRepository(client=None)


@pytest.fixture
def resolver_factory(cache, ip_lists, fake_ipapi) -> Callable[..., IpReputationResolver]:
    """Build resolvers wired to the fake upstream."""
    def _make(handler: Optional[Callable] = None, timeout: float = 1.0) -> IpReputationResolver:
        transport = httpx.MockTransport(handler or fake_ipapi.handler)
        client = httpx.AsyncClient(transport=transport)
        return IpReputationResolver(
            cache=cache,
            ip_lists=ip_lists,
            client=client,
            lookup_url="https://ipapi.test/{ip}/json/",
            timeout=timeout,
        )
    return _make


@pytest.fixture
def resolver(resolver_factory) -> IpReputationResolver:
    return resolver_factory()


# =============================================================================
# Audit Fixtures
# =============================================================================

class RecordingAudit:
    """Audit sink that keeps every record in memory."""

    def __init__(self, fail: bool = False) -> None:
        self.records: List[Dict[str, Any]] = []
        self.fail = fail
        self._lock = threading.Lock()

    def record_check(self, request_id, ip, fingerprint, behavior, result: FraudResult) -> None:
        if self.fail:
            raise RuntimeError("audit store offline")
        with self._lock:
            self.records.append({"request_id": request_id, "ip": ip, "result": result})


@pytest.fixture
def audit() -> RecordingAudit:
    return RecordingAudit()


# =============================================================================
# Redis Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def redis_client():
    """
    Session-scoped Redis client for repository integration tests.

    Requires a local Redis; tests are skipped otherwise.
    """
    import redis

    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", "6379"))
    password = os.environ.get("REDIS_PASSWORD", "PASS")

    try:
        client = redis.Redis(
            host=host,
            port=port,
            password=password,
            decode_responses=True,
        )
        client.ping()
    except redis.RedisError:
        pytest.skip(f"Redis not available at {host}:{port}")

    yield client
    client.close()


@pytest.fixture
def clean_redis(redis_client):
    """
    Function-scoped fixture that provides a clean Redis state.
    Flushes the database after each test for isolation.
    """
    yield redis_client
    redis_client.flushdb()
