"""
Device Detection Engine

Runs the fixed step catalog against a machine, collects probe readings
and operator outcomes, and produces a scored DetectionReport.

Usage:
    from core.detection import DetectionOrchestrator, ProbeSet

    orchestrator = DetectionOrchestrator(ProbeSet(hardware=read_hardware))
    state = orchestrator.start()
    state = orchestrator.resume_with_result('screen', {'has_dead_pixel': False})
    # or
    state = orchestrator.resume_with_skip('screen')
"""

from .catalog import KEYBOARD_LAYOUT, KEYBOARD_TOTAL_KEYS, STEP_CATALOG, get_step
from .classifier import classify
from .engine import DetectionOrchestrator, DetectionSettings
from .errors import (
    DetectionError,
    IncompleteRunAccess,
    InvalidOutcome,
    LedgerError,
    ProbeFailure,
    ProtocolViolation,
)
from .models import (
    DetectionReport,
    Issue,
    IssueFinding,
    IssueSeverity,
    LedgerEntry,
    MeasurementSnapshot,
    RunPhase,
    RunState,
    Step,
    StepCategory,
    StepStatus,
)
from .probes import ProbeResult, ProbeSet, ProbeStatus
from .report import save_report
from .scoring import calculate_score, score_label
from .text import IssueTextCatalog

__all__ = [
    'DetectionOrchestrator',
    'DetectionSettings',
    'ProbeSet',
    'ProbeResult',
    'ProbeStatus',
    'IssueTextCatalog',
    'save_report',
    'STEP_CATALOG',
    'KEYBOARD_LAYOUT',
    'KEYBOARD_TOTAL_KEYS',
    'get_step',
    'classify',
    'calculate_score',
    'score_label',
    'DetectionError',
    'ProbeFailure',
    'ProtocolViolation',
    'InvalidOutcome',
    'IncompleteRunAccess',
    'LedgerError',
    'DetectionReport',
    'Issue',
    'IssueFinding',
    'IssueSeverity',
    'LedgerEntry',
    'MeasurementSnapshot',
    'RunPhase',
    'RunState',
    'Step',
    'StepCategory',
    'StepStatus',
]
