"""
Report Assembler

Combines the frozen ledger, score, issues and measurements into one
DetectionReport.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

from .models import (
    BatteryReading, DetectionReport, DeviceOverview, Issue, LedgerEntry,
    MeasurementSnapshot, ReportSummary, StepStatus,
)
from .scoring import score_label

logger = logging.getLogger(__name__)


def summarize(steps: Mapping[str, LedgerEntry]) -> ReportSummary:
    """Count steps per final status."""
    statuses = [entry.status for entry in steps.values()]
    return ReportSummary(
        passed=statuses.count(StepStatus.PASSED),
        warning=statuses.count(StepStatus.WARNING),
        failed=statuses.count(StepStatus.FAILED),
        skipped=statuses.count(StepStatus.SKIPPED),
        total=len(statuses),
    )


def battery_rating(battery: Optional[BatteryReading]) -> Optional[str]:
    if battery is None:
        return None
    if battery.health >= 80:
        return "excellent"
    if battery.health >= 60:
        return "good"
    return "fair"


def device_overview(measurements: MeasurementSnapshot) -> DeviceOverview:
    hardware = measurements.hardware
    if hardware is None:
        return DeviceOverview(model="Unknown", os="Unknown", serial_number="Unknown")

    os_label = " ".join(p for p in (hardware.os_name, hardware.os_version) if p)
    return DeviceOverview(
        model=hardware.cpu_model or "Unknown",
        os=os_label or "Unknown",
        serial_number=hardware.serial_number or "Unknown",
    )


def assemble_report(
    steps: Mapping[str, LedgerEntry],
    score: int,
    issues: Iterable[Issue],
    measurements: MeasurementSnapshot,
    generated_at: Optional[datetime] = None,
) -> DetectionReport:
    """Build the report for a completed run. Each call gets a new id."""
    return DetectionReport(
        id=uuid.uuid4().hex,
        generated_at=generated_at or datetime.now(),
        overall_score=score,
        score_label=score_label(score),
        summary=summarize(steps),
        device_overview=device_overview(measurements),
        battery_rating=battery_rating(measurements.battery),
        steps=steps,
        issues=tuple(issues),
        measurements=measurements,
    )


def save_report(report: DetectionReport, directory: Union[str, Path],
                filename: Optional[str] = None) -> Path:
    """Write the report as JSON. Returns the file path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    if not filename:
        stamp = report.generated_at.strftime('%Y%m%d_%H%M%S')
        filename = f"quickscan_{stamp}_{report.id[:8]}.json"

    path = directory / Path(filename).name
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)

    logger.info(f"Report saved to {path}")
    return path
