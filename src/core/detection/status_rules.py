"""
Step Status Rules

Pure functions mapping a probe result or an interactive outcome to the
status and display value written into the ledger. One rule per
category; the tables at the bottom must cover every category.
"""

from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from .catalog import KEYBOARD_TOTAL_KEYS
from .errors import InvalidOutcome
from .models import (
    MEASUREMENT_TYPES, BatteryReading, CameraOutcome, HardwareInfo, KeyboardOutcome,
    Measurement, MicrophoneOutcome, NetworkReading, RefurbishmentAnalysis, ScreenOutcome,
    SensorReading, SpeakerOutcome, StepCategory, StepStatus, StorageReading, TrackpadOutcome,
)
from .probes import ProbeResult

# Battery health bands (percent of design capacity)
BATTERY_PASS_HEALTH = 80
BATTERY_WARN_HEALTH = 60


@dataclass(frozen=True)
class StatusDecision:
    status: StepStatus
    display_value: Optional[str] = None


# === Automatic steps ===

def _hardware_status(info: HardwareInfo) -> StatusDecision:
    return StatusDecision(StepStatus.PASSED, f"{info.cpu_model} | {info.memory_gb}GB")


def _battery_status(battery: BatteryReading) -> StatusDecision:
    if battery.health >= BATTERY_PASS_HEALTH:
        status = StepStatus.PASSED
    elif battery.health >= BATTERY_WARN_HEALTH:
        status = StepStatus.WARNING
    else:
        status = StepStatus.FAILED
    return StatusDecision(status, f"{round(battery.health)}% | {battery.cycle_count} cycles")


def _storage_status(storage: StorageReading) -> StatusDecision:
    status = StepStatus.PASSED if storage.is_healthy else StepStatus.WARNING
    return StatusDecision(status, f"SMART: {storage.smart_status}")


def _refurbishment_status(refurb: RefurbishmentAnalysis) -> StatusDecision:
    if not refurb.is_refurbished:
        return StatusDecision(StepStatus.PASSED, "Not detected")

    status = StepStatus.WARNING if refurb.flagged_indicators else StepStatus.PASSED
    if refurb.details.refurb_program:
        label = refurb.details.refurb_program
    elif refurb.replaced_parts:
        label = f"{len(refurb.replaced_parts)} part(s) replaced"
    else:
        label = "Refurbishment detected"
    return StatusDecision(status, label)


def _network_status(network: NetworkReading) -> StatusDecision:
    wifi = '✓' if network.wifi_enabled else '✗'
    bluetooth = '✓' if network.bluetooth_available else '✗'
    return StatusDecision(StepStatus.PASSED, f"WiFi {wifi} | Bluetooth {bluetooth}")


def _sensors_status(sensors: SensorReading) -> StatusDecision:
    found = [name for name, present in sensors.to_dict().items() if present]
    return StatusDecision(StepStatus.PASSED, ", ".join(found) if found else "Passed")


AUTOMATIC_RULES: Dict[StepCategory, Callable[[Any], StatusDecision]] = {
    StepCategory.HARDWARE: _hardware_status,
    StepCategory.BATTERY: _battery_status,
    StepCategory.STORAGE: _storage_status,
    StepCategory.REFURBISHMENT: _refurbishment_status,
    StepCategory.NETWORK: _network_status,
    StepCategory.SENSORS: _sensors_status,
}

# Status used when the probe failed or had nothing to report
PROBE_FALLBACKS: Dict[StepCategory, StatusDecision] = {
    StepCategory.HARDWARE: StatusDecision(StepStatus.FAILED, "Hardware info unavailable"),
    StepCategory.BATTERY: StatusDecision(StepStatus.WARNING, "Battery unreadable"),
    StepCategory.STORAGE: StatusDecision(StepStatus.PASSED, "SMART: not readable"),
    StepCategory.REFURBISHMENT: StatusDecision(StepStatus.PASSED, "Not detected"),
    StepCategory.NETWORK: StatusDecision(StepStatus.PASSED, "Network state unavailable"),
    StepCategory.SENSORS: StatusDecision(StepStatus.PASSED, "Sensors unavailable"),
}


def derive_probe_status(result: ProbeResult, strict_storage_fallback: bool = False) -> StatusDecision:
    """Status for an automatic step from its probe result."""
    if result:
        return AUTOMATIC_RULES[result.category](result.measurement)

    fallback = PROBE_FALLBACKS[result.category]
    if strict_storage_fallback and result.category == StepCategory.STORAGE:
        return StatusDecision(StepStatus.WARNING, fallback.display_value)
    return fallback


# === Interactive steps ===

def _screen_status(outcome: ScreenOutcome) -> StatusDecision:
    if outcome.has_dead_pixel:
        return StatusDecision(StepStatus.WARNING, "Dead pixels found")
    return StatusDecision(StepStatus.PASSED, "No dead pixels")


def _keyboard_status(outcome: KeyboardOutcome) -> StatusDecision:
    status = StepStatus.PASSED if outcome.all_registered else StepStatus.WARNING
    return StatusDecision(status, f"{outcome.tested_count}/{outcome.total_keys} keys tested")


def _trackpad_status(outcome: TrackpadOutcome) -> StatusDecision:
    failing = outcome.failing_functions
    if failing:
        return StatusDecision(StepStatus.WARNING, f"Not working: {', '.join(failing)}")
    return StatusDecision(StepStatus.PASSED, "Click, drag and gestures working")


def _working_status(outcome: Union[CameraOutcome, MicrophoneOutcome]) -> StatusDecision:
    if outcome.working:
        return StatusDecision(StepStatus.PASSED, "Working")
    return StatusDecision(StepStatus.FAILED, "Not working")


def _speaker_status(outcome: SpeakerOutcome) -> StatusDecision:
    failing = outcome.failing_channels
    if failing:
        return StatusDecision(StepStatus.WARNING, f"Failed: {', '.join(failing)} channel")
    return StatusDecision(StepStatus.PASSED, "Both channels working")


INTERACTIVE_RULES: Dict[StepCategory, Callable[[Any], StatusDecision]] = {
    StepCategory.SCREEN: _screen_status,
    StepCategory.KEYBOARD: _keyboard_status,
    StepCategory.TRACKPAD: _trackpad_status,
    StepCategory.CAMERA: _working_status,
    StepCategory.MICROPHONE: _working_status,
    StepCategory.SPEAKER: _speaker_status,
}


def derive_outcome_status(outcome: Measurement) -> StatusDecision:
    """Status for an interactive step from its (normalized) outcome."""
    return INTERACTIVE_RULES[outcome.category](outcome)


def coerce_outcome(category: StepCategory, value: Any,
                   keyboard_total_keys: int = KEYBOARD_TOTAL_KEYS) -> Measurement:
    """
    Normalize what an interactive harness handed back.

    Accepts the typed outcome itself, a plain mapping, or a bare boolean
    for the single-flag tests (screen, camera, microphone).
    """
    expected = MEASUREMENT_TYPES[category]
    if category not in INTERACTIVE_RULES:
        raise InvalidOutcome(f"{category.value} does not take an interactive outcome")
    if isinstance(value, expected):
        return value

    try:
        if category == StepCategory.KEYBOARD:
            return KeyboardOutcome.from_value(value, keyboard_total_keys)
        return expected.from_value(value)
    except (KeyError, TypeError, ValueError) as e:
        shape = "mapping" if isinstance(value, MappingABC) else type(value).__name__
        raise InvalidOutcome(
            f"Cannot read {category.value} outcome from {shape}: {e}",
            expected=category.value,
        ) from e

