"""
Behavior Analyzer Unit Tests

Tests for the deterministic threshold rules: desktop mouse tiers,
touch tiers for mobile / tablet, and suspicious device classes.
"""

import pytest

from core.models.behavior import BehaviorAnalyzer
from core.schemas.inputs import DeviceType
from core.schemas.outputs import Classification


@pytest.fixture
def analyzer():
    return BehaviorAnalyzer()


class TestDesktopTiers:
    """Desktop traffic is judged on mouse movements (40 / 20)."""

    def test_at_good_threshold(self, analyzer, behavior_factory):
        """40 movements is GOOD."""
        result = analyzer.analyze(DeviceType.DESKTOP, behavior_factory(mouse_movements=40))
        assert result.score == 100
        assert result.classification == Classification.GOOD
        assert result.flags == ["good_mouse_behavior"]
        assert result.reason == "Good desktop behavior: 40 mouse movements"
        print(f"\n✅ {result.reason}")

    def test_just_below_good_threshold(self, analyzer, behavior_factory):
        """39 movements drops to the low tier."""
        result = analyzer.analyze(DeviceType.DESKTOP, behavior_factory(mouse_movements=39))
        assert result.score == 60
        assert result.classification == Classification.WARN
        assert result.flags == ["low_movement"]
        assert "threshold: 40" in result.reason

    def test_at_warn_threshold(self, analyzer, behavior_factory):
        result = analyzer.analyze(DeviceType.DESKTOP, behavior_factory(mouse_movements=20))
        assert result.score == 60
        assert result.flags == ["low_movement"]

    def test_very_low(self, analyzer, behavior_factory):
        result = analyzer.analyze(DeviceType.DESKTOP, behavior_factory(mouse_movements=19))
        assert result.score == 40
        assert result.classification == Classification.WARN
        assert result.flags == ["very_low_movement"]

    def test_zero_movements_is_never_bad(self, analyzer, behavior_factory):
        """No interaction alone must not produce BAD."""
        result = analyzer.analyze(DeviceType.DESKTOP, behavior_factory())
        assert result.score == 40
        assert result.classification == Classification.WARN

    def test_touch_events_ignored_on_desktop(self, analyzer, behavior_factory):
        result = analyzer.analyze(
            DeviceType.DESKTOP, behavior_factory(mouse_movements=0, touch_events=50)
        )
        assert result.flags == ["very_low_movement"]


class TestTouchTiers:
    """Mobile and tablet traffic is judged on touch events (7 / 3)."""

    @pytest.mark.parametrize("device_type", [DeviceType.MOBILE, DeviceType.TABLET])
    def test_at_good_threshold(self, analyzer, behavior_factory, device_type):
        result = analyzer.analyze(device_type, behavior_factory(touch_events=7))
        assert result.score == 100
        assert result.classification == Classification.GOOD
        assert result.flags == ["good_touch_behavior"]

    def test_just_below_good_threshold(self, analyzer, behavior_factory):
        result = analyzer.analyze(DeviceType.MOBILE, behavior_factory(touch_events=6))
        assert result.score == 60
        assert result.flags == ["low_touch"]
        assert result.reason == "Low touch events: 6 (threshold: 7)"

    def test_at_warn_threshold(self, analyzer, behavior_factory):
        result = analyzer.analyze(DeviceType.MOBILE, behavior_factory(touch_events=3))
        assert result.score == 60

    def test_very_low(self, analyzer, behavior_factory):
        result = analyzer.analyze(DeviceType.MOBILE, behavior_factory(touch_events=2))
        assert result.score == 40
        assert result.flags == ["very_low_touch"]

    def test_zero_touches(self, analyzer, behavior_factory):
        result = analyzer.analyze(DeviceType.TABLET, behavior_factory())
        assert result.score == 40
        assert result.classification == Classification.WARN
        print(f"\n✅ {result.reason}")


class TestSuspiciousDevices:
    """Bot and unknown device classes score zero."""

    @pytest.mark.parametrize("device_type", [DeviceType.BOT, DeviceType.UNKNOWN])
    def test_suspicious(self, analyzer, behavior_factory, device_type):
        result = analyzer.analyze(device_type, behavior_factory(mouse_movements=500))
        assert result.score == 0
        assert result.classification == Classification.BAD
        assert result.flags == ["suspicious_device_type"]
        assert device_type.value in result.reason
