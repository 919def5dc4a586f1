"""
Tests for the probe adapter.

Run with: python3 -m pytest tests/test_detection_probes.py -v
"""

import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.detection.errors import ProbeFailure
from core.detection.models import BatteryReading, SensorReading, StepCategory
from core.detection.probes import ProbeAdapter, ProbeResult, ProbeSet, ProbeStatus


class TestProbeResult:
    """Test ProbeResult helpers."""

    def test_ok_is_truthy(self):
        """Only successful results are truthy."""
        result = ProbeResult.ok(BatteryReading(health=90, cycle_count=10))
        assert result
        assert result.category == StepCategory.BATTERY

    def test_degraded_and_failed_are_falsy(self):
        """Degraded and failed results are falsy."""
        assert not ProbeResult.degraded(StepCategory.BATTERY)
        assert not ProbeResult.fail(ProbeFailure('battery', 'x'), StepCategory.BATTERY)


class TestProbeAdapter:
    """Test ProbeAdapter.run()."""

    def test_success(self, good_probes):
        """A good mapping becomes a typed reading."""
        result = ProbeAdapter(good_probes).run(StepCategory.BATTERY)
        assert result.status == ProbeStatus.SUCCESS
        assert result.measurement.health == 92.0
        assert result.duration_ms is not None

    def test_probe_raises(self, make_probes, raising, caplog):
        """Exceptions become a failed result, logged at WARNING."""
        probes = make_probes(storage=raising('smartctl timed out'))
        with caplog.at_level(logging.WARNING):
            result = ProbeAdapter(probes).run(StepCategory.STORAGE)

        assert result.status == ProbeStatus.FAILED
        assert isinstance(result.error, ProbeFailure)
        assert 'smartctl timed out' in str(result.error)
        assert isinstance(result.error.cause, RuntimeError)
        assert 'storage probe failed' in caplog.text

    def test_probe_returns_none(self, make_probes):
        """None means the probe had nothing to report."""
        result = ProbeAdapter(make_probes(battery=None)).run(StepCategory.BATTERY)
        assert result.status == ProbeStatus.DEGRADED
        assert result.measurement is None
        assert result.error is None

    def test_malformed_data(self, make_probes):
        """A mapping missing required keys fails."""
        result = ProbeAdapter(make_probes(storage={'model': 'x'})).run(StepCategory.STORAGE)
        assert result.status == ProbeStatus.FAILED
        assert 'unreadable data' in str(result.error)

    def test_wrong_type(self, make_probes):
        """A non-mapping return fails instead of raising."""
        result = ProbeAdapter(make_probes(hardware=lambda: 'i7')).run(StepCategory.HARDWARE)
        assert result.status == ProbeStatus.FAILED

    def test_missing_probe(self):
        """An unconfigured probe fails its step."""
        result = ProbeAdapter(ProbeSet()).run(StepCategory.NETWORK)
        assert result.status == ProbeStatus.FAILED
        assert 'no probe configured' in str(result.error)

    def test_missing_sensor_probe(self):
        """Sensors default to an empty reading."""
        result = ProbeAdapter(ProbeSet()).run(StepCategory.SENSORS)
        assert result.status == ProbeStatus.SUCCESS
        assert result.measurement == SensorReading()
