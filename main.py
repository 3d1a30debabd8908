"""
Traffic Guard API

FastAPI application exposing:
- POST /fraud-check → JSON envelope {success, result, error, requestId}
- POST /ip-list → manage manual allow/deny overrides
- GET /ip-list/{ip} → current override for one IP
- GET /stats → daily aggregates, top BAD IPs, cache statistics
- GET /logs → recent audit records

Classification never fails the request: engine errors become a WARN verdict.
"""

from contextlib import asynccontextmanager
import asyncio
import logging
import uuid
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from core.cache import ReputationCache
from core.classifier import FraudClassifier
from core.config import (
    CACHE_CLEANUP_INTERVAL,
    IP_CACHE_MAX_SIZE,
    IP_CACHE_TTL,
    IP_LOOKUP_TIMEOUT,
)
from core.processors.ip_reputation import IpReputationResolver
from core.schemas.inputs import FraudCheckRequest, IpListRequest, ListAction
from core.schemas.outputs import FraudCheckResponse, IpReputationResult
from persistence.audit_logger import AuditLogger
from persistence.connection import get_optional_redis_client
from persistence.ip_list_repository import IpListRepository
from persistence.stats_repository import DailyStatsRepository


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


VERSION = "1.0.0"
DEFAULT_CLIENT_IP = "127.0.0.1"


class InvalidPayloadError(Exception):
    """Request body could not be parsed into a FraudCheckRequest."""
    pass


# =============================================================================
# Application State
# =============================================================================

class AppState:
    """Application state container."""
    cache: Optional[ReputationCache[IpReputationResult]] = None
    ip_lists: Optional[IpListRepository] = None
    stats: Optional[DailyStatsRepository] = None
    audit: Optional[AuditLogger] = None
    http: Optional[httpx.AsyncClient] = None
    resolver: Optional[IpReputationResolver] = None
    classifier: Optional[FraudClassifier] = None
    cleanup_task: Optional[asyncio.Task] = None


state = AppState()


async def run_cache_cleanup(cache: ReputationCache, interval: float) -> None:
    """Periodically evict expired reputation entries."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.cleanup()
        if removed:
            logger.info(f"Cache cleanup evicted {removed} expired entries")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Traffic Guard API...")
    redis_client = get_optional_redis_client()

    state.cache = ReputationCache(max_size=IP_CACHE_MAX_SIZE, default_ttl=IP_CACHE_TTL)
    state.ip_lists = IpListRepository(client=redis_client)
    state.stats = DailyStatsRepository(client=redis_client)
    state.audit = AuditLogger(stats=state.stats)
    state.http = httpx.AsyncClient(timeout=IP_LOOKUP_TIMEOUT)
    state.resolver = IpReputationResolver(
        cache=state.cache,
        ip_lists=state.ip_lists,
        client=state.http,
    )
    state.classifier = FraudClassifier(resolver=state.resolver, audit=state.audit)
    state.cleanup_task = asyncio.create_task(
        run_cache_cleanup(state.cache, CACHE_CLEANUP_INTERVAL)
    )
    logger.info("Traffic Guard ready")

    yield

    # Shutdown
    logger.info("Shutting down Traffic Guard API...")
    state.cleanup_task.cancel()
    try:
        await state.cleanup_task
    except asyncio.CancelledError:
        pass
    await state.classifier.drain()
    await state.http.aclose()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Traffic Guard",
    description="Ad-traffic fraud classification service",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # The collector script runs on publisher pages
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidPayloadError)
async def invalid_payload_handler(request: Request, exc: InvalidPayloadError):
    """Malformed /fraud-check bodies get the error envelope with HTTP 400."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    body = FraudCheckResponse(success=False, error=str(exc), request_id=request_id)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# =============================================================================
# Request Helpers
# =============================================================================

def extract_client_ip(request: Request) -> str:
    """
    Client IP from proxy headers.

    Order: X-Forwarded-For (first hop), CF-Connecting-IP, X-Real-IP.
    Falls back to 127.0.0.1 when none is present.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()

    return DEFAULT_CLIENT_IP


async def parse_fraud_check(request: Request) -> FraudCheckRequest:
    """Validate the raw body. Raises InvalidPayloadError on any problem."""
    try:
        body = await request.json()
    except ValueError:
        raise InvalidPayloadError("Request body is not valid JSON")

    if not isinstance(body, dict):
        raise InvalidPayloadError("Request body must be a JSON object")

    try:
        return FraudCheckRequest.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidPayloadError(
            f"Invalid request: missing or invalid {location} ({first['msg']})"
        )


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": VERSION,
        "storage": state.stats.source if state.stats else "memory",
        "audit_enabled": state.audit.enabled if state.audit else False,
    }


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    return RedirectResponse(url="/docs")


# =============================================================================
# Fraud Check Endpoint
# =============================================================================

@app.post("/fraud-check")
async def fraud_check(request: Request):
    """
    Classify one ad-traffic request.

    - Uses the body `ip` when given, else proxy headers
    - Returns GOOD, WARN or BAD with score, reason and flags
    - Audit persistence happens after the response is built
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    payload = await parse_fraud_check(request)
    ip = payload.ip or extract_client_ip(request)

    result = await state.classifier.classify(
        ip=ip,
        fingerprint=payload.fingerprint,
        behavior=payload.behavior,
        request_id=request_id,
    )

    response = FraudCheckResponse(success=True, result=result, request_id=request_id)
    return response.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# IP List Endpoints
# =============================================================================

@app.post("/ip-list")
async def manage_ip_list(payload: IpListRequest):
    """
    Add or remove a manual override.

    An IP lives on at most one list; adding it replaces any prior entry.
    The cached reputation is dropped so the change applies at once.
    """
    ip = payload.ip.strip()

    try:
        if payload.action == ListAction.ADD:
            if payload.list_type is None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="listType is required when adding an IP"
                )
            state.ip_lists.add_entry(
                ip,
                payload.list_type,
                reason=payload.reason,
                created_by=payload.created_by,
                ttl=payload.expires_in,
            )
            message = f"IP {ip} added to {payload.list_type.value} list"
        else:
            removed = state.ip_lists.remove_entry(ip)
            message = f"IP {ip} removed" if removed else f"IP {ip} was not listed"
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"IP list update error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error updating IP list"
        )

    state.resolver.invalidate(ip)
    return {"success": True, "message": message}


@app.get("/ip-list/{ip}")
async def get_ip_status(ip: str):
    """Current override status for one IP."""
    entry = state.ip_lists.get_entry(ip)
    return {
        "ip": ip,
        "listType": entry["list_type"] if entry else None,
        "entry": entry,
    }


# =============================================================================
# Dashboard Endpoints
# =============================================================================

@app.get("/stats")
async def get_stats(top: int = Query(10, ge=1, le=100)):
    """Today's aggregates and hourly series, top offenders and reputation cache statistics."""
    return {
        "success": True,
        "source": state.stats.source,
        **state.stats.get_today_stats(),
        "top_bad_ips": state.stats.get_top_bad_ips(limit=top),
        "cache": state.cache.get_stats(),
    }


@app.get("/logs")
async def get_logs(
    limit: int = Query(100, ge=1, le=1000),
    status_filter: Optional[str] = Query(None, alias="status"),
    country: Optional[str] = None,
    ip: Optional[str] = None,
    days: Optional[int] = Query(None, ge=1),
):
    """Recent audit records, newest first."""
    loop = asyncio.get_running_loop()
    logs = await loop.run_in_executor(
        None,
        lambda: state.audit.recent_checks(
            limit=limit, status=status_filter, country=country, ip=ip, days=days
        ),
    )
    return {"success": True, "count": len(logs), "logs": logs}


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
