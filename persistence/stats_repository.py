"""
Traffic Guard Daily Stats Repository

Per-day aggregate counters for the admin dashboard.

Key Schemas:
    DAILY_STATS:{YYYY-MM-DD}      # Redis HASH (counter fields, hour_{HH}_{label} buckets)
    BAD_IPS:{YYYY-MM-DD}          # Redis ZSET (ip -> BAD count)
    BAD_IP_REASONS:{YYYY-MM-DD}   # Redis HASH (ip -> first BAD reason of the day)

All keys expire after STATS_TTL. Without Redis, counters live in memory.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import redis
from redis.exceptions import RedisError


logger = logging.getLogger(__name__)


# Detection flags counted as blocks
BLOCK_FLAG_FIELDS: Dict[str, str] = {
    "vpn_detected": "vpn_blocked",
    "tor_detected": "tor_blocked",
    "datacenter_ip": "datacenter_blocked",
    "fake_mobile": "fake_mobile_blocked",
    "webdriver_detected": "automated_blocked",
    "headless_browser": "headless_blocked",
}

DEVICE_FIELDS = ("mobile", "desktop", "tablet", "bot")

LABELS = ("good", "warn", "bad")


def hour_field(hour: str, label: str) -> str:
    return f"hour_{hour}_{label}"


class DailyStatsRepository:
    """
    Aggregates verdicts per UTC day. All operations fail open.
    """

    STATS_TTL: int = 90 * 86400  # 90 days

    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        self.client = client
        self._local_stats: Dict[str, Counter] = defaultdict(Counter)
        self._local_bad_ips: Dict[str, Counter] = defaultdict(Counter)
        self._local_reasons: Dict[str, Dict[str, str]] = defaultdict(dict)
        self._local_lock = threading.Lock()

    @property
    def source(self) -> str:
        return "memory" if self.client is None else "redis"

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _today(self) -> str:
        return self._now().strftime("%Y-%m-%d")

    def _stats_key(self, day: str) -> str:
        return f"DAILY_STATS:{day}"

    def _bad_ips_key(self, day: str) -> str:
        return f"BAD_IPS:{day}"

    def _reasons_key(self, day: str) -> str:
        return f"BAD_IP_REASONS:{day}"

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def record(
        self,
        ip: str,
        classification: str,
        device_type: Optional[str],
        flags: List[str],
        processing_time_ms: float,
        reason: Optional[str] = None,
    ) -> None:
        """Bump the counters for one verdict."""
        now = self._now()
        day = now.strftime("%Y-%m-%d")
        label = classification.lower()
        increments: Dict[str, int] = {
            "total_checks": 1,
            f"{label}_count": 1,
            hour_field(now.strftime("%H"), label): 1,
        }
        if device_type in DEVICE_FIELDS:
            increments[f"{device_type}_count"] = 1
        for flag in flags:
            field = BLOCK_FLAG_FIELDS.get(flag)
            if field:
                increments[field] = 1
        is_bad = classification == "BAD"

        if self.client is None:
            with self._local_lock:
                stats = self._local_stats[day]
                stats.update(increments)
                stats["processing_time_total_ms"] += processing_time_ms
                stats["max_processing_time_ms"] = max(
                    stats["max_processing_time_ms"], processing_time_ms
                )
                if is_bad:
                    self._local_bad_ips[day][ip] += 1
                    if reason:
                        self._local_reasons[day].setdefault(ip, reason)
            return

        stats_key = self._stats_key(day)
        try:
            pipe = self.client.pipeline()
            for field, amount in increments.items():
                pipe.hincrby(stats_key, field, amount)
            pipe.hincrbyfloat(stats_key, "processing_time_total_ms", processing_time_ms)
            pipe.expire(stats_key, self.STATS_TTL)
            if is_bad:
                bad_key = self._bad_ips_key(day)
                pipe.zincrby(bad_key, 1, ip)
                pipe.expire(bad_key, self.STATS_TTL)
                if reason:
                    reasons_key = self._reasons_key(day)
                    pipe.hsetnx(reasons_key, ip, reason)
                    pipe.expire(reasons_key, self.STATS_TTL)
            pipe.execute()

            def bump_max(tx: redis.client.Pipeline) -> None:
                current = tx.hget(stats_key, "max_processing_time_ms")
                if current is None or processing_time_ms > float(current):
                    tx.multi()
                    tx.hset(stats_key, "max_processing_time_ms", processing_time_ms)

            # WATCH/MULTI; retried on concurrent writes
            self.client.transaction(bump_max, stats_key)
        except RedisError as e:
            logger.warning(f"Daily stats update failed: {e}")

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_today_stats(self) -> Dict[str, Any]:
        """Today's totals, rates, device breakdown and hourly series."""
        day = self._today()
        raw: Dict[str, float] = {}

        if self.client is None:
            with self._local_lock:
                raw = dict(self._local_stats.get(day, {}))
        else:
            try:
                raw = {k: float(v) for k, v in self.client.hgetall(self._stats_key(day)).items()}
            except RedisError as e:
                logger.warning(f"Daily stats read failed: {e}")

        total = int(raw.get("total_checks", 0))
        good = int(raw.get("good_count", 0))
        warn = int(raw.get("warn_count", 0))
        bad = int(raw.get("bad_count", 0))

        def rate(count: int) -> float:
            return (count / total) * 100 if total > 0 else 0.0

        return {
            "date": day,
            "today": {
                "total": total,
                "good": good,
                "warn": warn,
                "bad": bad,
                "good_rate": rate(good),
                "warn_rate": rate(warn),
                "bad_rate": rate(bad),
            },
            "device_breakdown": {
                device: int(raw.get(f"{device}_count", 0)) for device in DEVICE_FIELDS
            },
            "blocked": {
                field: int(raw.get(field, 0)) for field in BLOCK_FLAG_FIELDS.values()
            },
            "avg_processing_time": (
                raw.get("processing_time_total_ms", 0.0) / total if total > 0 else 0.0
            ),
            "max_processing_time": float(raw.get("max_processing_time_ms", 0.0)),
            "hourly_data": self._hourly_series(raw),
        }

    @staticmethod
    def _hourly_series(raw: Dict[str, float]) -> List[Dict[str, Any]]:
        """Hours with at least one verdict, in order, as {hour: "HH:00", good, warn, bad}."""
        series = []
        for h in range(24):
            hour = f"{h:02d}"
            counts = {label: int(raw.get(hour_field(hour, label), 0)) for label in LABELS}
            if any(counts.values()):
                series.append({"hour": f"{hour}:00", **counts})
        return series

    def get_top_bad_ips(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Most frequently BAD-classified IPs today, with the first BAD reason seen."""
        day = self._today()

        if self.client is None:
            with self._local_lock:
                ranked = self._local_bad_ips.get(day, Counter()).most_common(limit)
                reasons = dict(self._local_reasons.get(day, {}))
            return [
                {"ip": ip, "count": int(count), "reason": reasons.get(ip)}
                for ip, count in ranked
            ]

        try:
            ranked = self.client.zrevrange(self._bad_ips_key(day), 0, limit - 1, withscores=True)
            if not ranked:
                return []
            reasons = self.client.hmget(self._reasons_key(day), [ip for ip, _ in ranked])
            return [
                {"ip": ip, "count": int(score), "reason": reason}
                for (ip, score), reason in zip(ranked, reasons)
            ]
        except RedisError as e:
            logger.warning(f"Top BAD IPs read failed: {e}")
            return []
