"""
Traffic Guard Classification Engine

Priority-ordered rule cascade over device fingerprint, IP reputation
and behavior telemetry.

Detection Layers:
    Overrides → Device integrity → IP reputation → Carrier bypass → Behavior

Each rule either terminates with a verdict or falls through. Rules that
only need request data run before the reputation lookup, so a request
decided early never costs an upstream call.

Failure policy is fail-open: an internal error yields WARN / 50, never
BAD and never an exception to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from dataclasses import dataclass, replace
from functools import partial
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Set, Tuple

from user_agents import parse as parse_user_agent

from core.config import (
    DEVICE_COMPONENT_CLEAN,
    DEVICE_COMPONENT_TAINTED,
    GOOD_BEHAVIOR_SCORE,
    HIGH_RISK_BROWSER_PENALTY,
    HIGH_RISK_BROWSERS,
    IP_COMPONENT_SCORES,
    SCORING_WEIGHTS,
)
from core.models.behavior import BehaviorAnalyzer
from core.processors.ip_reputation import IpReputationResolver
from core.schemas.inputs import BehaviorData, Fingerprint, ListType
from core.schemas.outputs import (
    Classification,
    FraudDetails,
    FraudResult,
    IpReputationResult,
)
if TYPE_CHECKING:
    from persistence.audit_logger import AuditLogger


logger = logging.getLogger(__name__)


INTERNAL_ERROR_SCORE = 50
INTERNAL_ERROR_REASON = "Internal error - defaulting to WARN"


# =============================================================================
# Rule Cascade
# =============================================================================

@dataclass(frozen=True)
class ClassificationContext:
    """Immutable inputs visible to rule predicates."""
    ip: str
    fingerprint: Fingerprint
    behavior: BehaviorData
    override: Optional[ListType] = None
    reputation: Optional[IpReputationResult] = None


@dataclass(frozen=True)
class Rule:
    """One terminating rule: predicate plus the verdict it produces."""
    flag: str
    predicate: Callable[[ClassificationContext], bool]
    classification: Classification
    score: int
    reason: Callable[[ClassificationContext], str]


def _org(ctx: ClassificationContext) -> str:
    return ctx.reputation.org if ctx.reputation else ""


# Priorities 1-5: decided from request data alone
REQUEST_RULES: Tuple[Rule, ...] = (
    Rule(
        flag="ip_blacklisted",
        predicate=lambda ctx: ctx.override == ListType.DENY,
        classification=Classification.BAD,
        score=0,
        reason=lambda ctx: "IP is blacklisted",
    ),
    Rule(
        flag="ip_whitelisted",
        predicate=lambda ctx: ctx.override == ListType.ALLOW,
        classification=Classification.GOOD,
        score=100,
        reason=lambda ctx: "IP is whitelisted",
    ),
    Rule(
        flag="webdriver_detected",
        predicate=lambda ctx: ctx.fingerprint.device.is_automated,
        classification=Classification.BAD,
        score=0,
        reason=lambda ctx: "Automation detected (navigator.webdriver)",
    ),
    Rule(
        flag="headless_browser",
        predicate=lambda ctx: ctx.fingerprint.device.is_headless,
        classification=Classification.BAD,
        score=0,
        reason=lambda ctx: "Headless browser detected",
    ),
    Rule(
        flag="fake_mobile",
        predicate=lambda ctx: ctx.fingerprint.device.is_fake_mobile,
        classification=Classification.BAD,
        score=0,
        reason=lambda ctx: "Fake mobile device detected (emulator)",
    ),
)

# Priorities 6-9: need the resolved reputation
REPUTATION_RULES: Tuple[Rule, ...] = (
    Rule(
        flag="vpn_detected",
        predicate=lambda ctx: ctx.reputation.is_vpn,
        classification=Classification.BAD,
        score=5,
        reason=lambda ctx: f"VPN detected: {_org(ctx)}",
    ),
    Rule(
        flag="tor_detected",
        predicate=lambda ctx: ctx.reputation.is_tor,
        classification=Classification.BAD,
        score=0,
        reason=lambda ctx: "Tor exit node detected",
    ),
    Rule(
        flag="datacenter_ip",
        predicate=lambda ctx: ctx.reputation.is_datacenter,
        classification=Classification.BAD,
        score=10,
        reason=lambda ctx: f"Datacenter/hosting IP: {_org(ctx)}",
    ),
    Rule(
        flag="mobile_carrier",
        predicate=lambda ctx: ctx.reputation.is_mobile_carrier,
        classification=Classification.GOOD,
        score=95,
        reason=lambda ctx: f"Mobile carrier: {_org(ctx)}",
    ),
)


def first_match(rules: Sequence[Rule], ctx: ClassificationContext) -> Optional[Rule]:
    """First rule whose predicate holds, in priority order."""
    for rule in rules:
        if rule.predicate(ctx):
            return rule
    return None


# =============================================================================
# Scoring Helpers
# =============================================================================

def ip_component(reputation: IpReputationResult) -> int:
    """Trust contributed by the IP facet (higher = more trustworthy)."""
    if reputation.is_mobile_carrier:
        return IP_COMPONENT_SCORES["carrier"]
    if reputation.is_vpn or reputation.is_tor:
        return IP_COMPONENT_SCORES["vpn"]
    if reputation.is_datacenter:
        return IP_COMPONENT_SCORES["datacenter"]
    if reputation.is_proxy:
        return IP_COMPONENT_SCORES["proxy"]
    return IP_COMPONENT_SCORES["residential"]


def device_component(fingerprint: Fingerprint) -> int:
    device = fingerprint.device
    if device.is_fake_mobile or device.is_automated:
        return DEVICE_COMPONENT_TAINTED
    return DEVICE_COMPONENT_CLEAN


def composite_score(ip_score: int, device_score: int, behavior_score: int) -> int:
    """Weighted blend, rounded half-up and clamped to 0-100."""
    raw = (
        ip_score * SCORING_WEIGHTS["ip_reputation"]
        + device_score * SCORING_WEIGHTS["device_fingerprint"]
        + behavior_score * SCORING_WEIGHTS["behavior"]
    )
    return min(max(int(math.floor(raw + 0.5)), 0), 100)


def browser_name(fingerprint: Fingerprint) -> str:
    """Browser reported by the client, or parsed from the UA string."""
    if fingerprint.device.browser:
        return fingerprint.device.browser
    return parse_user_agent(fingerprint.user_agent).browser.family or ""


def is_high_risk_browser(fingerprint: Fingerprint) -> bool:
    name = browser_name(fingerprint).lower()
    return any(keyword in name for keyword in HIGH_RISK_BROWSERS)


# =============================================================================
# Engine
# =============================================================================

class FraudClassifier:
    """
    Orchestrates override lists, device flags, IP reputation and
    behavior into one FraudResult.

    Args:
        resolver: IP reputation resolver (owns the cache)
        audit: Audit sink; one record per classify() call
        behavior_analyzer: Behavior rules (default instance if omitted)
        penalize_label: Whether the high-risk browser penalty applies
            before the GOOD/WARN label is taken (True) or only to the
            reported composite score (False)
    """

    def __init__(
        self,
        resolver: IpReputationResolver,
        audit: Optional[AuditLogger] = None,
        behavior_analyzer: Optional[BehaviorAnalyzer] = None,
        penalize_label: bool = True,
    ) -> None:
        self.resolver = resolver
        self.audit = audit
        self.behavior_analyzer = behavior_analyzer or BehaviorAnalyzer()
        self.penalize_label = penalize_label
        self._pending_audits: Set[asyncio.Future] = set()

        logger.info("FraudClassifier initialized")

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def classify(
        self,
        ip: str,
        fingerprint: Fingerprint,
        behavior: BehaviorData,
        request_id: Optional[str] = None,
    ) -> FraudResult:
        """Classify one request. Never raises."""
        request_id = request_id or str(uuid.uuid4())
        start = time.perf_counter()

        try:
            result = await self._evaluate(ip, fingerprint, behavior, start)
        except Exception as e:
            logger.error(f"Classification failed for {request_id}: {e}", exc_info=True)
            result = FraudResult(
                classification=Classification.WARN,
                score=INTERNAL_ERROR_SCORE,
                reason=INTERNAL_ERROR_REASON,
                flags=["internal_error"],
                processing_time=_elapsed_ms(start),
            )

        logger.debug(
            f"[{request_id}] {ip} -> {result.classification.value} "
            f"score={result.score} ({result.reason}) in {result.processing_time:.2f}ms"
        )
        self._schedule_audit(request_id, ip, fingerprint, behavior, result)
        return result

    async def classify_batch(
        self,
        requests: Sequence[Tuple[str, Fingerprint, BehaviorData]],
    ) -> List[FraudResult]:
        """Classify (ip, fingerprint, behavior) tuples concurrently."""
        return list(await asyncio.gather(
            *(self.classify(ip, fp, bd) for ip, fp, bd in requests)
        ))

    async def drain(self) -> None:
        """Wait for every scheduled audit write to finish."""
        if self._pending_audits:
            await asyncio.gather(*list(self._pending_audits), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Cascade
    # -------------------------------------------------------------------------

    async def _evaluate(
        self,
        ip: str,
        fingerprint: Fingerprint,
        behavior: BehaviorData,
        start: float,
    ) -> FraudResult:
        flags: List[str] = []
        ctx = ClassificationContext(
            ip=ip,
            fingerprint=fingerprint,
            behavior=behavior,
            override=self.resolver.lookup_override(ip),
        )

        # ===== Priorities 1-5: overrides and device integrity =====
        rule = first_match(REQUEST_RULES, ctx)
        if rule is not None:
            flags.append(rule.flag)
            return self._verdict(rule, ctx, flags, start)

        # ===== Priorities 6-9: IP reputation =====
        ctx = replace(ctx, reputation=await self.resolver.resolve(ip))
        rule = first_match(REPUTATION_RULES, ctx)
        if rule is not None:
            flags.append(rule.flag)
            return self._verdict(rule, ctx, flags, start)

        # ===== Priority 10: behavior =====
        device_type = fingerprint.device.type
        analysis = self.behavior_analyzer.analyze(device_type, behavior)
        flags.extend(analysis.flags)

        behavior_score = analysis.score
        if is_high_risk_browser(fingerprint):
            flags.append("high_risk_browser")
            behavior_score = max(0, behavior_score - HIGH_RISK_BROWSER_PENALTY)

        score = composite_score(
            ip_component(ctx.reputation),
            device_component(fingerprint),
            behavior_score,
        )

        # Label comes from behavior alone and is never BAD at this tier
        label_score = behavior_score if self.penalize_label else analysis.score
        if label_score >= GOOD_BEHAVIOR_SCORE:
            classification = Classification.GOOD
        else:
            classification = Classification.WARN

        return FraudResult(
            classification=classification,
            score=score,
            reason=analysis.reason,
            flags=flags,
            processing_time=_elapsed_ms(start),
            details=FraudDetails(
                ip_reputation=ctx.reputation,
                device_type=device_type,
                behavior_score=behavior_score,
            ),
        )

    def _verdict(
        self,
        rule: Rule,
        ctx: ClassificationContext,
        flags: List[str],
        start: float,
    ) -> FraudResult:
        return FraudResult(
            classification=rule.classification,
            score=rule.score,
            reason=rule.reason(ctx),
            flags=flags,
            processing_time=_elapsed_ms(start),
            details=FraudDetails(
                ip_reputation=ctx.reputation,
                device_type=ctx.fingerprint.device.type,
            ),
        )

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    def _schedule_audit(
        self,
        request_id: str,
        ip: str,
        fingerprint: Fingerprint,
        behavior: BehaviorData,
        result: FraudResult,
    ) -> None:
        """Hand the audit write to a worker thread without awaiting it."""
        if self.audit is None:
            return

        try:
            loop = asyncio.get_running_loop()
            future = loop.run_in_executor(
                None,
                partial(self.audit.record_check, request_id, ip, fingerprint, behavior, result),
            )
        except Exception as e:
            logger.error(f"Could not schedule audit for {request_id}: {e}")
            return

        self._pending_audits.add(future)
        future.add_done_callback(self._audit_done)

    def _audit_done(self, future: asyncio.Future) -> None:
        self._pending_audits.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error(f"Audit write failed: {future.exception()}")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0
