"""
Traffic Guard IP Reputation Resolver

Resolves an IP address into VPN / datacenter / carrier / Tor facets.
No decisions. No blocking. Lookup failures degrade to a neutral result.

Resolution order: validate → cache → upstream (ipapi.co JSON, hard timeout).
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

import httpx

from core.cache import ReputationCache
from core.config import (
    ALL_CARRIER_ASNS,
    BATCH_LOOKUP_DELAY,
    BATCH_LOOKUP_SIZE,
    DATACENTER_ASNS,
    DATACENTER_KEYWORDS,
    IP_CACHE_TTL,
    IP_LOOKUP_TIMEOUT,
    IP_LOOKUP_URL,
    TOR_KEYWORDS,
    VPN_KEYWORDS,
)
from core.schemas.inputs import ListType
from core.schemas.outputs import IpReputationResult
if TYPE_CHECKING:
    from persistence.ip_list_repository import IpListRepository


logger = logging.getLogger(__name__)


_IPV4_RE = re.compile(r"([0-9]{1,3}\.){3}[0-9]{1,3}")
_IPV6_RE = re.compile(r"([0-9a-fA-F]{0,4}:){2,7}[0-9a-fA-F]{0,4}")
_ASN_DIGITS_RE = re.compile(r"\d+")


class ReputationLookupError(Exception):
    """Upstream returned a response that cannot be used."""
    pass


# =============================================================================
# Parsing Helpers
# =============================================================================

def is_valid_ip(ip: str) -> bool:
    """IPv4 with octets 0-255, or a syntactically plausible IPv6 string."""
    if not ip:
        return False

    if _IPV4_RE.fullmatch(ip):
        return all(0 <= int(octet) <= 255 for octet in ip.split("."))

    return bool(_IPV6_RE.fullmatch(ip))


def parse_asn(asn: Optional[str]) -> Optional[int]:
    """
    Parse "AS55836" or "55836" into an integer.
    Returns None for empty or non-numeric input.
    """
    if not asn:
        return None

    match = _ASN_DIGITS_RE.search(str(asn))
    if match is None:
        return None
    return int(match.group(0))


def parse_provider_response(ip: str, data: Dict[str, Any]) -> IpReputationResult:
    """Map an ipapi.co payload onto the canonical reputation record."""
    asn = parse_asn(data.get("asn"))
    org_raw = data.get("org") or ""
    org = org_raw.lower()

    is_datacenter_asn = asn is not None and asn in DATACENTER_ASNS
    is_datacenter_name = any(keyword in org for keyword in DATACENTER_KEYWORDS)

    return IpReputationResult(
        ip=data.get("ip") or ip,
        is_vpn=any(keyword in org for keyword in VPN_KEYWORDS),
        is_datacenter=is_datacenter_asn or is_datacenter_name,
        is_mobile_carrier=asn is not None and asn in ALL_CARRIER_ASNS,
        is_proxy=False,  # not provided by ipapi.co
        is_tor=any(keyword in org for keyword in TOR_KEYWORDS),
        asn=asn,
        org=org_raw,
        isp=org_raw,  # ipapi.co reports the ISP as org
        country=data.get("country_name") or data.get("country") or "",
        country_code=data.get("country_code") or "",
        region=data.get("region") or "",
        city=data.get("city") or "",
        cached=False,
    )


# =============================================================================
# Resolver
# =============================================================================

class IpReputationResolver:
    """
    Cache-then-network IP reputation lookups plus manual override queries.

    Args:
        cache: Shared reputation cache (owned by the hosting process)
        ip_lists: Manual allow/deny override store
        client: HTTP client; one is created (and owned) if omitted
        lookup_url: Provider URL template with an {ip} placeholder
        timeout: Hard upper bound for one upstream lookup, in seconds
        cache_ttl: TTL for freshly resolved results, in seconds
    """

    def __init__(
        self,
        cache: ReputationCache[IpReputationResult],
        ip_lists: IpListRepository,
        client: Optional[httpx.AsyncClient] = None,
        lookup_url: str = IP_LOOKUP_URL,
        timeout: float = IP_LOOKUP_TIMEOUT,
        cache_ttl: float = IP_CACHE_TTL,
    ) -> None:
        self.cache = cache
        self.ip_lists = ip_lists
        self.lookup_url = lookup_url
        self.timeout = timeout
        self.cache_ttl = cache_ttl

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        """Close the HTTP client if this resolver created it."""
        if self._owns_client:
            await self.client.aclose()

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    async def resolve(self, ip: str) -> IpReputationResult:
        """
        Resolve ip to a reputation record. Never raises.

        Invalid input, timeouts and upstream errors all yield the
        neutral unknown result, which is not cached.
        """
        if not is_valid_ip(ip):
            logger.warning(f"Unknown reputation for {ip!r}: invalid IP format")
            return IpReputationResult.unknown(ip)

        cached = self.cache.get(ip)
        if cached is not None:
            return cached.model_copy(update={"cached": True})

        try:
            result = await asyncio.wait_for(self._fetch(ip), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Unknown reputation for {ip}: lookup timed out after {self.timeout}s")
            return IpReputationResult.unknown(ip)
        except Exception as e:
            logger.warning(f"Unknown reputation for {ip}: lookup failed ({e})")
            return IpReputationResult.unknown(ip)

        try:
            self.cache.set(ip, result.model_copy(update={"cached_at": time.time()}), self.cache_ttl)
        except Exception as e:
            logger.error(f"Reputation cache write failed for {ip}: {e}")

        return result

    async def _fetch(self, ip: str) -> IpReputationResult:
        """Single upstream call. Raises on transport, status or payload errors."""
        response = await self.client.get(self.lookup_url.format(ip=ip))
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            raise ReputationLookupError(f"unexpected payload type {type(data).__name__}")
        if data.get("error"):
            raise ReputationLookupError(data.get("reason") or "provider error")

        return parse_provider_response(ip, data)

    async def resolve_many(
        self,
        ips: Iterable[str],
        batch_size: int = BATCH_LOOKUP_SIZE,
        delay: float = BATCH_LOOKUP_DELAY,
    ) -> Dict[str, IpReputationResult]:
        """
        Resolve many IPs in fixed-width concurrent batches.

        A short pause between batches keeps the upstream under its rate
        limit. A failure for one IP never aborts the rest.
        """
        ip_list = list(ips)
        results: Dict[str, IpReputationResult] = {}

        for start in range(0, len(ip_list), batch_size):
            batch = ip_list[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self.resolve(ip) for ip in batch),
                return_exceptions=True,
            )

            for ip, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning(f"Batch lookup failed for {ip}: {outcome}")
                    outcome = IpReputationResult.unknown(ip)
                results[ip] = outcome

            if start + batch_size < len(ip_list):
                await asyncio.sleep(delay)

        return results

    def invalidate(self, ip: str) -> bool:
        """Drop the cached reputation so an admin change applies at once."""
        return self.cache.delete(ip)

    # -------------------------------------------------------------------------
    # Manual Overrides
    # -------------------------------------------------------------------------

    def lookup_override(self, ip: str) -> Optional[ListType]:
        """Current override for ip. Store failures count as no override."""
        try:
            return self.ip_lists.lookup_entry(ip)
        except Exception as e:
            logger.warning(f"Override lookup failed for {ip}: {e}")
            return None

    def is_whitelisted(self, ip: str) -> bool:
        return self.lookup_override(ip) == ListType.ALLOW

    def is_blacklisted(self, ip: str) -> bool:
        return self.lookup_override(ip) == ListType.DENY
