"""
Detection Data Models

Everything the detection engine passes around:
- Steps and ledger entries
- One frozen measurement type per step category (the probe readings
  and the interactive outcomes)
- Issue findings, rendered issues and the final DetectionReport

All measurement and report types are immutable dataclasses with
to_dict() for JSON output.
"""

import math
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Union


# === Status Enums ===

class StepStatus(Enum):
    """Status of a single detection step."""
    PENDING = "pending"
    TESTING = "testing"
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_final(self) -> bool:
        return self not in (StepStatus.PENDING, StepStatus.TESTING)


class StepCategory(Enum):
    """Categories of the detection sequence, one step each."""
    HARDWARE = "hardware"
    BATTERY = "battery"
    STORAGE = "storage"
    REFURBISHMENT = "refurbishment"
    NETWORK = "network"
    SCREEN = "screen"
    KEYBOARD = "keyboard"
    TRACKPAD = "trackpad"
    CAMERA = "camera"
    MICROPHONE = "microphone"
    SPEAKER = "speaker"
    SENSORS = "sensors"


class RunPhase(Enum):
    """Lifecycle phase of a detection run."""
    IDLE = "idle"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"


class IssueSeverity(Enum):
    """Severity of a derived issue."""
    WARNING = "warning"
    FAILED = "failed"


class IndicatorSeverity(Enum):
    """Severity attached to a refurbishment indicator by the probe."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# === Steps & Ledger ===

@dataclass(frozen=True)
class Step:
    """
    One unit of the fixed detection sequence.

    Attributes:
        id: Stable step identifier (e.g., "battery")
        category: Which measurement category the step fills
        interactive: True if a human has to act before the step resolves
        name: Display name
    """
    id: str
    category: StepCategory
    interactive: bool
    name: str


@dataclass(frozen=True)
class RunState:
    """Run phase plus, while suspended, the step we are waiting on."""
    phase: RunPhase
    step_id: Optional[str] = None

    @classmethod
    def idle(cls) -> 'RunState':
        return cls(RunPhase.IDLE)

    @classmethod
    def running(cls) -> 'RunState':
        return cls(RunPhase.RUNNING)

    @classmethod
    def suspended(cls, step_id: str) -> 'RunState':
        return cls(RunPhase.SUSPENDED, step_id)

    @classmethod
    def completed(cls) -> 'RunState':
        return cls(RunPhase.COMPLETED)

    @property
    def is_suspended(self) -> bool:
        return self.phase == RunPhase.SUSPENDED

    @property
    def is_completed(self) -> bool:
        return self.phase == RunPhase.COMPLETED

    def __str__(self) -> str:
        if self.step_id:
            return f"{self.phase.value}({self.step_id})"
        return self.phase.value


@dataclass(frozen=True)
class LedgerEntry:
    """Current status and display value of one step."""
    status: StepStatus = StepStatus.PENDING
    display_value: Optional[str] = None

    def to_dict(self) -> dict:
        return {"status": self.status.value, "value": self.display_value}


# === Probe Readings ===

@dataclass(frozen=True)
class HardwareInfo:
    """CPU, memory and identity of the machine under test."""
    category: ClassVar[StepCategory] = StepCategory.HARDWARE

    cpu_model: str
    cpu_cores: int
    memory_total: int  # bytes
    serial_number: str = "Unknown"
    os_name: str = ""
    os_version: str = ""
    hostname: str = ""

    @property
    def memory_gb(self) -> float:
        return round(self.memory_total / (1024 ** 3), 1)

    def to_dict(self) -> dict:
        return {
            "cpu": {"model": self.cpu_model, "cores": self.cpu_cores},
            "memory": {"total": self.memory_total},
            "serial_number": self.serial_number,
            "os_name": self.os_name,
            "os_version": self.os_version,
            "hostname": self.hostname,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'HardwareInfo':
        cpu = data['cpu']
        memory = data.get('memory') or {}
        return cls(
            cpu_model=str(cpu.get('model', '')),
            cpu_cores=int(cpu.get('cores', 0)),
            memory_total=int(memory.get('total', 0)),
            serial_number=str(data.get('serial_number') or 'Unknown'),
            os_name=str(data.get('os_name', '')),
            os_version=str(data.get('os_version', '')),
            hostname=str(data.get('hostname', '')),
        )


@dataclass(frozen=True)
class BatteryReading:
    """
    Battery wear reading.

    Attributes:
        health: Full-charge capacity as a percentage of design capacity
        cycle_count: Charge cycles reported by the battery
    """
    category: ClassVar[StepCategory] = StepCategory.BATTERY

    health: float
    cycle_count: int
    design_capacity: int = 0
    current_capacity: int = 0
    is_charging: bool = False

    def to_dict(self) -> dict:
        return {
            "health": self.health,
            "cycle_count": self.cycle_count,
            "design_capacity": self.design_capacity,
            "current_capacity": self.current_capacity,
            "is_charging": self.is_charging,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'BatteryReading':
        health = float(data['health'])
        if not math.isfinite(health):
            raise ValueError(f"battery health must be finite, got {health}")
        return cls(
            health=health,
            cycle_count=int(data.get('cycle_count', 0)),
            design_capacity=int(data.get('design_capacity', 0)),
            current_capacity=int(data.get('current_capacity', 0)),
            is_charging=bool(data.get('is_charging', False)),
        )


# First word of a SMART verdict that counts as healthy
HEALTHY_SMART_VERDICTS = ('verified', 'healthy', 'passed', 'ok')


@dataclass(frozen=True)
class StorageReading:
    """Primary disk model and its SMART verdict, as reported."""
    category: ClassVar[StepCategory] = StepCategory.STORAGE

    model: str
    smart_status: str

    @property
    def is_healthy(self) -> bool:
        words = self.smart_status.strip().lower().split()
        return bool(words) and words[0] in HEALTHY_SMART_VERDICTS

    def to_dict(self) -> dict:
        return {"model": self.model, "smart_status": self.smart_status}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'StorageReading':
        return cls(
            model=str(data.get('model') or 'Unknown'),
            smart_status=str(data['smart_status']),
        )


@dataclass(frozen=True)
class NetworkReading:
    """Wireless radios present on the machine."""
    category: ClassVar[StepCategory] = StepCategory.NETWORK

    wifi_enabled: bool
    bluetooth_available: bool

    def to_dict(self) -> dict:
        return {
            "wifi": {"enabled": self.wifi_enabled},
            "bluetooth": {"available": self.bluetooth_available},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'NetworkReading':
        return cls(
            wifi_enabled=bool((data.get('wifi') or {}).get('enabled', False)),
            bluetooth_available=bool((data.get('bluetooth') or {}).get('available', False)),
        )


@dataclass(frozen=True)
class SensorReading:
    """Motion/light sensors found; None means the probe could not tell."""
    category: ClassVar[StepCategory] = StepCategory.SENSORS

    ambient_light: Optional[bool] = None
    accelerometer: Optional[bool] = None
    gyroscope: Optional[bool] = None

    def to_dict(self) -> dict:
        return {
            "ambient_light": self.ambient_light,
            "accelerometer": self.accelerometer,
            "gyroscope": self.gyroscope,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SensorReading':
        def _flag(key: str) -> Optional[bool]:
            value = data.get(key)
            return None if value is None else bool(value)

        return cls(
            ambient_light=_flag('ambient_light'),
            accelerometer=_flag('accelerometer'),
            gyroscope=_flag('gyroscope'),
        )


@dataclass(frozen=True)
class RefurbishmentIndicator:
    """A single signal contributing to the refurbishment assessment."""
    name: str
    detected: bool
    description: str
    severity: IndicatorSeverity

    @property
    def is_flagged(self) -> bool:
        """True for indicators that should surface as issues."""
        return self.severity in (IndicatorSeverity.WARNING, IndicatorSeverity.CRITICAL)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "detected": self.detected,
            "description": self.description,
            "severity": self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RefurbishmentIndicator':
        return cls(
            name=str(data['name']),
            detected=bool(data.get('detected', True)),
            description=str(data.get('description', '')),
            severity=IndicatorSeverity(str(data.get('severity', 'info')).lower()),
        )


@dataclass(frozen=True)
class RefurbishmentDetails:
    """Dates and programme information gathered during the assessment."""
    serial_manufacture_date: Optional[str] = None
    os_install_date: Optional[str] = None
    battery_manufacture_date: Optional[str] = None
    storage_first_use_date: Optional[str] = None
    date_mismatch: bool = False
    refurb_program: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "serial_manufacture_date": self.serial_manufacture_date,
            "os_install_date": self.os_install_date,
            "battery_manufacture_date": self.battery_manufacture_date,
            "storage_first_use_date": self.storage_first_use_date,
            "date_mismatch": self.date_mismatch,
            "refurb_program": self.refurb_program,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RefurbishmentDetails':
        return cls(
            serial_manufacture_date=data.get('serial_manufacture_date'),
            os_install_date=data.get('os_install_date'),
            battery_manufacture_date=data.get('battery_manufacture_date'),
            storage_first_use_date=data.get('storage_first_use_date'),
            date_mismatch=bool(data.get('date_mismatch', False)),
            refurb_program=data.get('refurb_program') or None,
        )


@dataclass(frozen=True)
class RefurbishmentAnalysis:
    """Result of the refurbishment probe."""
    category: ClassVar[StepCategory] = StepCategory.REFURBISHMENT

    is_refurbished: bool
    confidence: str = "low"
    indicators: Tuple[RefurbishmentIndicator, ...] = ()
    replaced_parts: Tuple[str, ...] = ()
    details: RefurbishmentDetails = field(default_factory=RefurbishmentDetails)

    @property
    def flagged_indicators(self) -> Tuple[RefurbishmentIndicator, ...]:
        return tuple(i for i in self.indicators if i.is_flagged)

    def to_dict(self) -> dict:
        return {
            "is_refurbished": self.is_refurbished,
            "confidence": self.confidence,
            "indicators": [i.to_dict() for i in self.indicators],
            "replaced_parts": list(self.replaced_parts),
            "details": self.details.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'RefurbishmentAnalysis':
        return cls(
            is_refurbished=bool(data['is_refurbished']),
            confidence=str(data.get('confidence', 'low')),
            indicators=tuple(
                RefurbishmentIndicator.from_dict(i) for i in data.get('indicators') or ()
            ),
            replaced_parts=tuple(str(p) for p in data.get('replaced_parts') or ()),
            details=RefurbishmentDetails.from_dict(data.get('details') or {}),
        )


# === Interactive Outcomes ===

def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise TypeError(f"'{key}' must be a boolean, got {type(value).__name__}")


def _single_flag(value: Any, key: str) -> bool:
    """Accept either a bare boolean or a mapping holding `key`."""
    if isinstance(value, MappingABC):
        return _as_bool(value[key], key)
    return _as_bool(value, key)


@dataclass(frozen=True)
class ScreenOutcome:
    """Dead pixel test result."""
    category: ClassVar[StepCategory] = StepCategory.SCREEN

    has_dead_pixel: bool

    def to_dict(self) -> dict:
        return {"has_dead_pixel": self.has_dead_pixel}

    @classmethod
    def from_value(cls, value: Any) -> 'ScreenOutcome':
        return cls(has_dead_pixel=_single_flag(value, 'has_dead_pixel'))


@dataclass(frozen=True)
class KeyboardOutcome:
    """How many of the layout's keys registered a press."""
    category: ClassVar[StepCategory] = StepCategory.KEYBOARD

    tested_count: int
    total_keys: int

    @property
    def tested_ratio(self) -> float:
        if self.total_keys <= 0:
            return 1.0
        return self.tested_count / self.total_keys

    @property
    def all_registered(self) -> bool:
        return self.tested_ratio >= 1

    def to_dict(self) -> dict:
        return {"tested_count": self.tested_count, "total_keys": self.total_keys}

    @classmethod
    def from_value(cls, value: Any, total_keys: int) -> 'KeyboardOutcome':
        if not isinstance(value, MappingABC):
            raise TypeError("keyboard outcome must be a mapping")
        if 'tested_keys' in value:
            tested = len(set(value['tested_keys']))
        else:
            tested = int(value['tested_count'])
        total = int(value.get('total_keys', total_keys))
        if tested < 0 or total < 0:
            raise ValueError("key counts cannot be negative")
        return cls(tested_count=min(tested, total) if total else tested, total_keys=total)


TRACKPAD_FUNCTIONS = ('click', 'drag', 'gesture')


@dataclass(frozen=True)
class TrackpadOutcome:
    """Click, drag and multi-finger gesture sub-tests."""
    category: ClassVar[StepCategory] = StepCategory.TRACKPAD

    click: bool
    drag: bool
    gesture: bool

    @property
    def failing_functions(self) -> List[str]:
        return [name for name in TRACKPAD_FUNCTIONS if not getattr(self, name)]

    def to_dict(self) -> dict:
        return {"click": self.click, "drag": self.drag, "gesture": self.gesture}

    @classmethod
    def from_value(cls, value: Any) -> 'TrackpadOutcome':
        if not isinstance(value, MappingABC):
            raise TypeError("trackpad outcome must be a mapping")
        return cls(**{name: _as_bool(value[name], name) for name in TRACKPAD_FUNCTIONS})


@dataclass(frozen=True)
class CameraOutcome:
    category: ClassVar[StepCategory] = StepCategory.CAMERA

    working: bool

    def to_dict(self) -> dict:
        return {"working": self.working}

    @classmethod
    def from_value(cls, value: Any) -> 'CameraOutcome':
        return cls(working=_single_flag(value, 'working'))


@dataclass(frozen=True)
class MicrophoneOutcome:
    category: ClassVar[StepCategory] = StepCategory.MICROPHONE

    working: bool

    def to_dict(self) -> dict:
        return {"working": self.working}

    @classmethod
    def from_value(cls, value: Any) -> 'MicrophoneOutcome':
        return cls(working=_single_flag(value, 'working'))


SPEAKER_CHANNELS = ('left', 'right')


@dataclass(frozen=True)
class SpeakerOutcome:
    """Operator confirmation of each stereo channel."""
    category: ClassVar[StepCategory] = StepCategory.SPEAKER

    left: bool
    right: bool

    @property
    def failing_channels(self) -> List[str]:
        return [name for name in SPEAKER_CHANNELS if not getattr(self, name)]

    def to_dict(self) -> dict:
        return {"left": self.left, "right": self.right}

    @classmethod
    def from_value(cls, value: Any) -> 'SpeakerOutcome':
        if not isinstance(value, MappingABC):
            raise TypeError("speaker outcome must be a mapping")
        return cls(**{name: _as_bool(value[name], name) for name in SPEAKER_CHANNELS})


Measurement = Union[
    HardwareInfo, BatteryReading, StorageReading, RefurbishmentAnalysis,
    NetworkReading, SensorReading, ScreenOutcome, KeyboardOutcome,
    TrackpadOutcome, CameraOutcome, MicrophoneOutcome, SpeakerOutcome,
]

MEASUREMENT_TYPES: Dict[StepCategory, type] = {
    StepCategory.HARDWARE: HardwareInfo,
    StepCategory.BATTERY: BatteryReading,
    StepCategory.STORAGE: StorageReading,
    StepCategory.REFURBISHMENT: RefurbishmentAnalysis,
    StepCategory.NETWORK: NetworkReading,
    StepCategory.SENSORS: SensorReading,
    StepCategory.SCREEN: ScreenOutcome,
    StepCategory.KEYBOARD: KeyboardOutcome,
    StepCategory.TRACKPAD: TrackpadOutcome,
    StepCategory.CAMERA: CameraOutcome,
    StepCategory.MICROPHONE: MicrophoneOutcome,
    StepCategory.SPEAKER: SpeakerOutcome,
}


# === Raw Measurements ===

@dataclass(frozen=True)
class MeasurementSnapshot:
    """
    Frozen view of everything measured in one run.

    A field is None when its category was never measured; `unmeasured`
    maps those category values to the reason (skipped, probe failed...).
    """
    hardware: Optional[HardwareInfo] = None
    battery: Optional[BatteryReading] = None
    storage: Optional[StorageReading] = None
    refurbishment: Optional[RefurbishmentAnalysis] = None
    network: Optional[NetworkReading] = None
    sensors: Optional[SensorReading] = None
    screen: Optional[ScreenOutcome] = None
    keyboard: Optional[KeyboardOutcome] = None
    trackpad: Optional[TrackpadOutcome] = None
    camera: Optional[CameraOutcome] = None
    microphone: Optional[MicrophoneOutcome] = None
    speaker: Optional[SpeakerOutcome] = None
    unmeasured: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def get(self, category: StepCategory) -> Optional[Measurement]:
        return getattr(self, category.value)

    def to_dict(self) -> dict:
        data = {}
        for category in StepCategory:
            value = self.get(category)
            data[category.value] = value.to_dict() if value is not None else None
        data["unmeasured"] = dict(self.unmeasured)
        return data


class RawMeasurements:
    """
    Append-only store of measurements for a single run.

    Each category is written once: either a measurement is recorded or
    the category is marked unmeasured.
    """

    def __init__(self):
        self._values: Dict[StepCategory, Measurement] = {}
        self._unmeasured: Dict[StepCategory, str] = {}

    def record(self, measurement: Measurement) -> None:
        category = measurement.category
        self._check_unwritten(category)
        self._values[category] = measurement

    def mark_unmeasured(self, category: StepCategory, reason: str) -> None:
        self._check_unwritten(category)
        self._unmeasured[category] = reason

    def _check_unwritten(self, category: StepCategory) -> None:
        if category in self._values or category in self._unmeasured:
            raise ValueError(f"{category.value} already written for this run")

    def get(self, category: StepCategory) -> Optional[Measurement]:
        return self._values.get(category)

    def is_written(self, category: StepCategory) -> bool:
        return category in self._values or category in self._unmeasured

    def snapshot(self) -> MeasurementSnapshot:
        return MeasurementSnapshot(
            unmeasured=MappingProxyType({c.value: r for c, r in self._unmeasured.items()}),
            **{c.value: m for c, m in self._values.items()},
        )


# === Issues ===

@dataclass(frozen=True)
class IssueFinding:
    """
    A rule that fired, before any text is attached.

    Attributes:
        rule_id: Which rule fired (e.g., "battery.health")
        category: Step category the finding belongs to
        severity: WARNING or FAILED
        params: Values the text layer may interpolate
        evidence: Short measured value backing the finding (e.g., "75%")
    """
    rule_id: str
    category: StepCategory
    severity: IssueSeverity
    params: Mapping[str, Any] = field(default_factory=dict)
    evidence: Optional[str] = None

    def __post_init__(self):
        # Read-only copy; lists become tuples
        frozen = {
            key: tuple(value) if isinstance(value, (list, tuple)) else value
            for key, value in dict(self.params).items()
        }
        object.__setattr__(self, 'params', MappingProxyType(frozen))


@dataclass(frozen=True)
class Issue:
    """A human-actionable finding, ready for display."""
    category: StepCategory
    severity: IssueSeverity
    title: str
    description: str
    suggestion: str
    evidence: Optional[str] = None
    rule_id: str = ""

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "suggestion": self.suggestion,
            "evidence": self.evidence,
            "rule_id": self.rule_id,
        }


# === Report ===

@dataclass(frozen=True)
class ReportSummary:
    """Step counts by final status."""
    passed: int
    warning: int
    failed: int
    skipped: int
    total: int

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "warning": self.warning,
            "failed": self.failed,
            "skipped": self.skipped,
            "total": self.total,
        }


@dataclass(frozen=True)
class DeviceOverview:
    model: str
    os: str
    serial_number: str

    def to_dict(self) -> dict:
        return {"model": self.model, "os": self.os, "serial_number": self.serial_number}


@dataclass(frozen=True)
class DetectionReport:
    """
    Immutable result of one completed detection run.

    Contains the score, step counts, the frozen ledger, derived issues
    and every raw measurement for traceability.
    """
    id: str
    generated_at: datetime
    overall_score: int
    score_label: str
    summary: ReportSummary
    device_overview: DeviceOverview
    battery_rating: Optional[str]
    steps: Mapping[str, LedgerEntry]
    issues: Tuple[Issue, ...]
    measurements: MeasurementSnapshot

    @property
    def warnings(self) -> Tuple[Issue, ...]:
        return tuple(i for i in self.issues if i.severity == IssueSeverity.WARNING)

    @property
    def failures(self) -> Tuple[Issue, ...]:
        return tuple(i for i in self.issues if i.severity == IssueSeverity.FAILED)

    @property
    def has_failures(self) -> bool:
        return self.summary.failed > 0 or bool(self.failures)

    def to_dict(self) -> dict:
        """Serialize for API/JSON output."""
        return {
            "id": self.id,
            "generated_at": self.generated_at.isoformat(),
            "overall_score": self.overall_score,
            "score_label": self.score_label,
            "summary": self.summary.to_dict(),
            "device_overview": self.device_overview.to_dict(),
            "battery_rating": self.battery_rating,
            "steps": {step_id: entry.to_dict() for step_id, entry in self.steps.items()},
            "issues": [i.to_dict() for i in self.issues],
            "raw_data": self.measurements.to_dict(),
        }
