"""
Traffic Guard Audit Logger

Fire-and-forget audit writer that inserts one row into the Supabase
`fraud_checks` table after every classification and bumps the daily
aggregates.

Schema:
    fraud_checks (
        request_id         TEXT PRIMARY KEY,
        session_id         TEXT,
        ip_address         TEXT,
        asn                INTEGER,
        org                TEXT,
        country_code       TEXT,
        classification     TEXT,
        score              SMALLINT,
        reason             TEXT,
        flags              TEXT[],
        device_type        TEXT,
        user_agent         TEXT,
        os                 TEXT,
        browser            TEXT,
        mouse_movements    INTEGER,
        touch_events       INTEGER,
        scroll_events      INTEGER,
        active_time_ms     REAL,
        is_vpn             BOOLEAN,
        is_datacenter      BOOLEAN,
        is_mobile_carrier  BOOLEAN,
        is_fake_mobile     BOOLEAN,
        is_automated       BOOLEAN,
        is_headless        BOOLEAN,
        processing_time_ms REAL,
        page_url           TEXT,
        environment        TEXT,
        created_at         TIMESTAMPTZ DEFAULT now()
    )
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from supabase import create_client, Client

from core.config import ENVIRONMENT
from core.schemas.inputs import BehaviorData, Fingerprint
from core.schemas.outputs import FraudResult, IpReputationResult
from persistence.stats_repository import DailyStatsRepository

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Builds and inserts audit rows into Supabase.

    All writes are best-effort: errors are logged but never raised
    so the verdict path is never disturbed.
    """

    TABLE_NAME = "fraud_checks"

    def __init__(
        self,
        stats: Optional[DailyStatsRepository] = None,
        client: Optional[Client] = None,
    ) -> None:
        self.stats = stats

        if client is not None:
            self._client: Optional[Client] = client
            return

        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_KEY")
        if not url or not key:
            logger.warning("Supabase credentials missing, audit rows will not be persisted")
            self._client = None
            return
        self._client = create_client(url, key)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record_check(
        self,
        request_id: str,
        ip: str,
        fingerprint: Fingerprint,
        behavior: BehaviorData,
        result: FraudResult,
    ) -> None:
        """Persist one verdict. Never raises."""
        if self.stats is not None:
            try:
                self.stats.record(
                    ip=ip,
                    classification=result.classification.value,
                    device_type=fingerprint.device.type.value,
                    flags=result.flags,
                    processing_time_ms=result.processing_time,
                    reason=result.reason,
                )
            except Exception as e:
                logger.error(f"Daily stats update failed for {request_id}: {e}")

        if self._client is None:
            return

        try:
            row = self._build_row(request_id, ip, fingerprint, behavior, result)
            self._client.table(self.TABLE_NAME).insert(row).execute()
            logger.debug(f"Audit row inserted: {request_id}")
        except Exception as e:
            logger.error(f"Audit row insertion failed for {request_id}: {e}")

    def recent_checks(
        self,
        limit: int = 100,
        status: Optional[str] = None,
        country: Optional[str] = None,
        ip: Optional[str] = None,
        days: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Most recent audit rows, newest first.

        Args:
            limit:   Maximum rows returned
            status:  Classification filter (GOOD/WARN/BAD, "ALL" = no filter)
            country: ISO country code filter
            ip:      Case-insensitive partial IP match
            days:    Only rows from the last N days
        """
        if self._client is None:
            return []

        try:
            query = self._client.table(self.TABLE_NAME).select("*")
            if status and status.upper() != "ALL":
                query = query.eq("classification", status.upper())
            if country:
                query = query.eq("country_code", country.upper())
            if ip:
                query = query.ilike("ip_address", f"%{ip}%")
            if days:
                since = datetime.now(timezone.utc) - timedelta(days=days)
                query = query.gte("created_at", since.isoformat())

            response = query.order("created_at", desc=True).limit(limit).execute()
            return response.data or []
        except Exception as e:
            logger.error(f"Audit log query failed: {e}")
            return []

    # ------------------------------------------------------------------
    # Row Builder
    # ------------------------------------------------------------------

    def _build_row(
        self,
        request_id: str,
        ip: str,
        fingerprint: Fingerprint,
        behavior: BehaviorData,
        result: FraudResult,
    ) -> Dict[str, Any]:
        """Flatten request and verdict into a fraud_checks row."""
        reputation = result.details.ip_reputation or IpReputationResult.unknown(ip)
        device = fingerprint.device

        return {
            # Identifiers
            "request_id": request_id,
            "session_id": behavior.session_id or None,
            "environment": ENVIRONMENT,

            # Network
            "ip_address": ip,
            "asn": reputation.asn,
            "org": reputation.org,
            "country_code": reputation.country_code,

            # Verdict
            "classification": result.classification.value,
            "score": result.score,
            "reason": result.reason,
            "flags": result.flags,
            "processing_time_ms": result.processing_time,

            # Device
            "device_type": device.type.value,
            "user_agent": fingerprint.user_agent,
            "os": device.os,
            "browser": device.browser,

            # Behavior
            "mouse_movements": behavior.mouse_movements,
            "touch_events": behavior.touch_events,
            "scroll_events": behavior.scroll_events,
            "active_time_ms": behavior.active_time,
            "page_url": behavior.page_url,

            # Signals
            "is_vpn": reputation.is_vpn,
            "is_datacenter": reputation.is_datacenter,
            "is_mobile_carrier": reputation.is_mobile_carrier,
            "is_fake_mobile": device.is_fake_mobile,
            "is_automated": device.is_automated,
            "is_headless": device.is_headless,

            "created_at": datetime.now(timezone.utc).isoformat(),
        }
