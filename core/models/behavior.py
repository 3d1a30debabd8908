"""
Traffic Guard Behavior Analyzer

Pure rule logic mapping interaction counts to a trust score.
This module is STATELESS and DETERMINISTIC.

Desktop traffic is judged on pointer movements, touch devices on
touch events. Low interaction never yields BAD on its own.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from core.config import BEHAVIOR_SCORES, BEHAVIOR_THRESHOLDS
from core.schemas.inputs import BehaviorData, DeviceType
from core.schemas.outputs import Classification


logger = logging.getLogger(__name__)


@dataclass
class BehaviorAnalysis:
    """Outcome of one behavior evaluation."""
    score: int
    classification: Classification
    reason: str
    flags: List[str] = field(default_factory=list)


class BehaviorAnalyzer:
    """
    Two-tier threshold rules per device class.

    Decision Logic (desktop, m = mouse movements):
        m >= 40       → 100 GOOD
        20 <= m < 40  → 60 WARN  (low_movement)
        m < 20        → 40 WARN  (very_low_movement)

    Touch devices (t = touch events) use cut points 7 / 3 with
    low_touch / very_low_touch. Bot and unknown devices score 0 BAD.
    """

    DESKTOP_GOOD: int = BEHAVIOR_THRESHOLDS["desktop"]["good"]
    DESKTOP_WARN: int = BEHAVIOR_THRESHOLDS["desktop"]["warn"]
    TOUCH_GOOD: int = BEHAVIOR_THRESHOLDS["touch"]["good"]
    TOUCH_WARN: int = BEHAVIOR_THRESHOLDS["touch"]["warn"]

    def analyze(self, device_type: DeviceType, behavior: BehaviorData) -> BehaviorAnalysis:
        """
        Score behavior for the given device class.

        Args:
            device_type: Device class reported by the fingerprint
            behavior: Frozen interaction telemetry

        Returns:
            BehaviorAnalysis with score, classification, reason and flags.
        """
        if device_type in (DeviceType.BOT, DeviceType.UNKNOWN):
            return BehaviorAnalysis(
                score=BEHAVIOR_SCORES["suspicious"],
                classification=Classification.BAD,
                reason=f"Suspicious device type: {device_type.value}",
                flags=["suspicious_device_type"],
            )

        if device_type == DeviceType.DESKTOP:
            return self._tiered(
                count=behavior.mouse_movements,
                good=self.DESKTOP_GOOD,
                warn=self.DESKTOP_WARN,
                unit="mouse movements",
                good_label="desktop",
                good_flag="good_mouse_behavior",
                low_flag="low_movement",
            )

        if device_type in (DeviceType.MOBILE, DeviceType.TABLET):
            return self._tiered(
                count=behavior.touch_events,
                good=self.TOUCH_GOOD,
                warn=self.TOUCH_WARN,
                unit="touch events",
                good_label="mobile",
                good_flag="good_touch_behavior",
                low_flag="low_touch",
            )

        # Unreachable for the closed DeviceType set
        logger.warning(f"No behavior rule for device type {device_type!r}")
        return BehaviorAnalysis(
            score=BEHAVIOR_SCORES["fallback"],
            classification=Classification.WARN,
            reason="Unknown behavior pattern",
            flags=["unknown_behavior"],
        )

    def _tiered(
        self,
        count: int,
        good: int,
        warn: int,
        unit: str,
        good_label: str,
        good_flag: str,
        low_flag: str,
    ) -> BehaviorAnalysis:
        """Apply GOOD / WARN / very-low WARN tiers to one counter."""
        if count >= good:
            return BehaviorAnalysis(
                score=BEHAVIOR_SCORES["good"],
                classification=Classification.GOOD,
                reason=f"Good {good_label} behavior: {count} {unit}",
                flags=[good_flag],
            )

        if count >= warn:
            return BehaviorAnalysis(
                score=BEHAVIOR_SCORES["low"],
                classification=Classification.WARN,
                reason=f"Low {unit}: {count} (threshold: {good})",
                flags=[low_flag],
            )

        return BehaviorAnalysis(
            score=BEHAVIOR_SCORES["very_low"],
            classification=Classification.WARN,
            reason=f"Very low {unit}: {count}",
            flags=[f"very_{low_flag}"],
        )
