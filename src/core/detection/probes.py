"""
Probe Adapter

Wraps the external probe callables behind one contract. A probe is any
zero-argument callable returning a mapping (success), None (nothing to
report, e.g. no battery fitted) or raising (failure).

ProbeResult provides a consistent return type for every automatic step.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from .errors import ProbeFailure
from .models import MEASUREMENT_TYPES, Measurement, SensorReading, StepCategory

logger = logging.getLogger(__name__)

ProbeCallable = Callable[[], Optional[Mapping[str, Any]]]


class ProbeStatus(Enum):
    """Outcome of a single probe invocation."""
    SUCCESS = "success"
    DEGRADED = "degraded"    # probe ran, nothing to report
    FAILED = "failed"        # probe raised or returned unreadable data


@dataclass
class ProbeResult:
    """
    Unified result type for all probes.

    Attributes:
        category: Which category was probed
        status: SUCCESS, DEGRADED or FAILED
        measurement: Parsed reading on success
        error: The ProbeFailure on failure
        duration_ms: How long the probe took
    """
    category: StepCategory
    status: ProbeStatus
    measurement: Optional[Measurement] = None
    error: Optional[ProbeFailure] = None
    duration_ms: Optional[float] = None

    def __bool__(self) -> bool:
        return self.status == ProbeStatus.SUCCESS

    @classmethod
    def ok(cls, measurement: Measurement, duration_ms: float = None) -> 'ProbeResult':
        """Create a successful result."""
        return cls(measurement.category, ProbeStatus.SUCCESS, measurement, duration_ms=duration_ms)

    @classmethod
    def degraded(cls, category: StepCategory, duration_ms: float = None) -> 'ProbeResult':
        """Create a result for a probe that had nothing to report."""
        return cls(category, ProbeStatus.DEGRADED, duration_ms=duration_ms)

    @classmethod
    def fail(cls, error: ProbeFailure, category: StepCategory, duration_ms: float = None) -> 'ProbeResult':
        """Create a failed result."""
        return cls(category, ProbeStatus.FAILED, error=error, duration_ms=duration_ms)


@dataclass
class ProbeSet:
    """
    The probe callables for each automatic category.

    A missing probe fails its step, except sensors: with no sensor probe
    the step resolves with an empty reading.
    """
    hardware: Optional[ProbeCallable] = None
    battery: Optional[ProbeCallable] = None
    storage: Optional[ProbeCallable] = None
    refurbishment: Optional[ProbeCallable] = None
    network: Optional[ProbeCallable] = None
    sensors: Optional[ProbeCallable] = None

    def for_category(self, category: StepCategory) -> Optional[ProbeCallable]:
        return getattr(self, category.value, None)


class ProbeAdapter:
    """Invokes probes and turns whatever they do into a ProbeResult."""

    def __init__(self, probes: ProbeSet):
        self.probes = probes

    def run(self, category: StepCategory) -> ProbeResult:
        """Run the probe for `category`. Never raises."""
        start = time.time()
        try:
            measurement = self._invoke(category)
        except ProbeFailure as e:
            duration = (time.time() - start) * 1000
            logger.warning(str(e))
            return ProbeResult.fail(e, category, duration_ms=duration)

        duration = (time.time() - start) * 1000
        if measurement is None:
            logger.info(f"{category.value} probe returned no data")
            return ProbeResult.degraded(category, duration_ms=duration)
        return ProbeResult.ok(measurement, duration_ms=duration)

    def _invoke(self, category: StepCategory) -> Optional[Measurement]:
        probe = self.probes.for_category(category)
        if probe is None:
            if category == StepCategory.SENSORS:
                return SensorReading()
            raise ProbeFailure(category.value, "no probe configured")

        try:
            raw = probe()
        except Exception as e:
            raise ProbeFailure(category.value, str(e) or type(e).__name__, cause=e) from e

        if raw is None:
            return None

        try:
            return MEASUREMENT_TYPES[category].from_dict(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ProbeFailure(category.value, f"unreadable data ({e!r})", cause=e) from e
