"""
Issue Classifier

Threshold rules over the final measurements. Each rule looks at one
category and returns zero or more IssueFindings; classify() runs them in
the fixed report order:

    battery health, battery cycle count, storage, screen, keyboard,
    trackpad, camera, microphone, speaker, refurbishment

A category that was not measured (probe failed, step skipped) never
produces a finding. No text here: see text.IssueTextCatalog.
"""

from typing import Callable, List, Tuple

from .models import (
    IndicatorSeverity, IssueFinding, IssueSeverity, MeasurementSnapshot, StepCategory,
)

# Battery thresholds
HEALTH_WARNING_BELOW = 80
HEALTH_FAILED_BELOW = 60
CYCLES_WARNING_ABOVE = 500
CYCLES_FAILED_ABOVE = 800

Rule = Callable[[MeasurementSnapshot], List[IssueFinding]]


def battery_health_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    battery = m.battery
    if battery is None or battery.health >= HEALTH_WARNING_BELOW:
        return []
    severity = IssueSeverity.FAILED if battery.health < HEALTH_FAILED_BELOW else IssueSeverity.WARNING
    health = round(battery.health)
    return [IssueFinding(
        'battery.health', StepCategory.BATTERY, severity,
        params={'health': health},
        evidence=f"{health}%",
    )]


def battery_cycles_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    battery = m.battery
    if battery is None or battery.cycle_count <= CYCLES_WARNING_ABOVE:
        return []
    severity = IssueSeverity.FAILED if battery.cycle_count > CYCLES_FAILED_ABOVE else IssueSeverity.WARNING
    return [IssueFinding(
        'battery.cycle_count', StepCategory.BATTERY, severity,
        params={'cycle_count': battery.cycle_count},
        evidence=f"{battery.cycle_count} cycles",
    )]


def storage_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    storage = m.storage
    if storage is None or storage.is_healthy:
        return []
    # A drive that is not clearly healthy is always a failure
    return [IssueFinding(
        'storage.smart', StepCategory.STORAGE, IssueSeverity.FAILED,
        params={'smart_status': storage.smart_status, 'model': storage.model},
        evidence=storage.smart_status,
    )]


def screen_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    if m.screen is None or not m.screen.has_dead_pixel:
        return []
    return [IssueFinding('screen.dead_pixel', StepCategory.SCREEN, IssueSeverity.WARNING)]


def keyboard_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    keyboard = m.keyboard
    if keyboard is None or keyboard.tested_ratio >= 1:
        return []
    return [IssueFinding(
        'keyboard.incomplete', StepCategory.KEYBOARD, IssueSeverity.WARNING,
        params={'tested_count': keyboard.tested_count, 'total_keys': keyboard.total_keys},
        evidence=f"{keyboard.tested_count}/{keyboard.total_keys}",
    )]


def trackpad_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    if m.trackpad is None:
        return []
    failing = m.trackpad.failing_functions
    if not failing:
        return []
    return [IssueFinding(
        'trackpad.malfunction', StepCategory.TRACKPAD, IssueSeverity.WARNING,
        params={'functions': failing},
    )]


def camera_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    if m.camera is None or m.camera.working:
        return []
    return [IssueFinding('camera.not_working', StepCategory.CAMERA, IssueSeverity.FAILED)]


def microphone_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    if m.microphone is None or m.microphone.working:
        return []
    return [IssueFinding('microphone.not_working', StepCategory.MICROPHONE, IssueSeverity.FAILED)]


def speaker_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    if m.speaker is None:
        return []
    failing = m.speaker.failing_channels
    if not failing:
        return []
    return [IssueFinding(
        'speaker.channel_failure', StepCategory.SPEAKER, IssueSeverity.WARNING,
        params={'channels': failing},
    )]


def refurbishment_rule(m: MeasurementSnapshot) -> List[IssueFinding]:
    """Replaced parts, then the certified programme, then flagged indicators."""
    refurb = m.refurbishment
    if refurb is None or not refurb.is_refurbished:
        return []

    findings = [
        IssueFinding(
            'refurbishment.replaced_part', StepCategory.REFURBISHMENT, IssueSeverity.WARNING,
            params={'part': part},
        )
        for part in refurb.replaced_parts
    ]

    program = refurb.details.refurb_program
    if program:
        findings.append(IssueFinding(
            'refurbishment.certified_program', StepCategory.REFURBISHMENT, IssueSeverity.WARNING,
            params={'program': program},
            evidence=program,
        ))

    for indicator in refurb.flagged_indicators:
        severity = (IssueSeverity.FAILED if indicator.severity == IndicatorSeverity.CRITICAL
                    else IssueSeverity.WARNING)
        findings.append(IssueFinding(
            'refurbishment.indicator', StepCategory.REFURBISHMENT, severity,
            params={'name': indicator.name, 'description': indicator.description},
        ))

    return findings


RULES: Tuple[Rule, ...] = (
    battery_health_rule,
    battery_cycles_rule,
    storage_rule,
    screen_rule,
    keyboard_rule,
    trackpad_rule,
    camera_rule,
    microphone_rule,
    speaker_rule,
    refurbishment_rule,
)


def classify(measurements: MeasurementSnapshot) -> List[IssueFinding]:
    """All findings for a run, in report order."""
    findings: List[IssueFinding] = []
    for rule in RULES:
        findings.extend(rule(measurements))
    return findings
