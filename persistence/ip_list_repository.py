"""
Traffic Guard IP List Repository

Manual allow/deny overrides for individual IP addresses.

Key Schema:
    IP_LIST:{ip}    # Redis STRING (JSON entry, optional TTL)

One key per IP means an address can only ever sit on one list:
adding it to one list replaces any entry on the other.

Without Redis the repository keeps entries in process memory.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import redis
from redis.exceptions import RedisError

from core.schemas.inputs import ListType


logger = logging.getLogger(__name__)


class IpListRepository:
    """
    Override list store. Read failures are logged and treated as "no entry".
    """

    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        self.client = client
        self._local: Dict[str, Tuple[Dict[str, Any], Optional[float]]] = {}
        self._local_lock = threading.Lock()

        if client is None:
            logger.warning("IP list repository running without Redis, entries are process-local")

    def _key(self, ip: str) -> str:
        return f"IP_LIST:{ip}"

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add_entry(
        self,
        ip: str,
        list_type: ListType,
        reason: Optional[str] = None,
        created_by: Optional[str] = None,
        ttl: Optional[int] = None,
    ) -> None:
        """Put ip on the given list, replacing any entry on the other one."""
        ip = ip.strip()
        entry = {
            "ip": ip,
            "list_type": list_type.value,
            "reason": reason,
            "created_by": created_by,
            "created_at": time.time(),
        }

        if self.client is None:
            expires_at = time.time() + ttl if ttl else None
            with self._local_lock:
                self._local[ip] = (entry, expires_at)
        else:
            self.client.set(self._key(ip), json.dumps(entry), ex=ttl)

        logger.info(f"IP {ip} added to {list_type.value} list")

    def remove_entry(self, ip: str) -> bool:
        """Remove ip from whichever list holds it."""
        ip = ip.strip()
        if self.client is None:
            with self._local_lock:
                removed = self._local.pop(ip, None) is not None
        else:
            removed = self.client.delete(self._key(ip)) > 0

        if removed:
            logger.info(f"IP {ip} removed from override lists")
        return removed

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_entry(self, ip: str) -> Optional[Dict[str, Any]]:
        """Full entry for ip, or None. Never raises."""
        ip = ip.strip()
        if self.client is None:
            with self._local_lock:
                stored = self._local.get(ip)
                if stored is None:
                    return None
                entry, expires_at = stored
                if expires_at is not None and time.time() > expires_at:
                    del self._local[ip]
                    return None
                return dict(entry)

        try:
            data = self.client.get(self._key(ip))
            if data is None:
                return None
            return json.loads(data)
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"IP list lookup failed for {ip}: {e}")
            return None

    def lookup_entry(self, ip: str) -> Optional[ListType]:
        """ListType.ALLOW, ListType.DENY, or None."""
        entry = self.get_entry(ip)
        if entry is None:
            return None
        try:
            return ListType(entry.get("list_type"))
        except ValueError:
            logger.warning(f"Corrupt IP list entry for {ip}: {entry}")
            return None
