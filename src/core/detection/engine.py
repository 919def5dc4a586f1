"""
Detection Orchestrator

Drives one detection run through the step catalog. Automatic steps run
their probe and resolve immediately; interactive steps suspend the run
until the harness resumes it with an outcome or a skip.

    idle --start()--> running --(interactive step)--> suspended(step_id)
    suspended(step_id) --resume_with_result/skip(step_id)--> running
    running --(last step resolved)--> completed

Usage:
    orchestrator = DetectionOrchestrator(HostProbes.default())
    orchestrator.register_step_callback(my_handler)
    state = orchestrator.start()
    while state.is_suspended:
        state = orchestrator.resume_with_result(state.step_id, ask_operator(state.step_id))
    report = orchestrator.report
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from .catalog import KEYBOARD_TOTAL_KEYS, STEP_CATALOG
from .classifier import classify
from .errors import IncompleteRunAccess, InvalidOutcome, ProbeFailure, ProtocolViolation
from .ledger import Ledger
from .models import (
    DetectionReport, Issue, LedgerEntry, MeasurementSnapshot, RawMeasurements,
    RunPhase, RunState, Step, StepCategory, StepStatus,
)
from .probes import ProbeAdapter, ProbeResult, ProbeSet
from .report import assemble_report
from .scoring import calculate_score
from .status_rules import coerce_outcome, derive_outcome_status, derive_probe_status
from .text import IssueTextCatalog

logger = logging.getLogger(__name__)

# Callback signatures
StepCallback = Callable[[str, LedgerEntry], None]
ProgressCallback = Callable[[str, int, int], None]
CompletionCallback = Callable[[DetectionReport], None]


@dataclass(frozen=True)
class DetectionSettings:
    """
    Engine settings.

    Attributes:
        strict_storage_fallback: A failed storage probe resolves as
            warning instead of passed
        keyboard_total_keys: Keys the keyboard test expects when the
            outcome does not say
    """
    strict_storage_fallback: bool = False
    keyboard_total_keys: int = KEYBOARD_TOTAL_KEYS


class DetectionSession:
    """Mutable state of a single run. Replaced wholesale on reset."""

    def __init__(self, steps: Sequence[Step]):
        self.ledger = Ledger(steps)
        self.raw = RawMeasurements()
        self.state = RunState.idle()
        self.cursor = 0
        self.started_at: Optional[datetime] = None
        self.report: Optional[DetectionReport] = None


class DetectionOrchestrator:
    """
    Resumable state machine over the step catalog.

    Not a singleton: each orchestrator owns one session at a time, and
    reset() swaps in a fresh one.
    """

    def __init__(
        self,
        probes: ProbeSet,
        settings: Optional[DetectionSettings] = None,
        text_catalog: Optional[IssueTextCatalog] = None,
        steps: Sequence[Step] = STEP_CATALOG,
    ):
        self.settings = settings or DetectionSettings()
        self.text_catalog = text_catalog or IssueTextCatalog()
        self.steps: Tuple[Step, ...] = tuple(steps)
        self._adapter = ProbeAdapter(probes)
        self._session = DetectionSession(self.steps)
        self._lock = threading.RLock()

        self._step_callbacks: List[StepCallback] = []
        self._progress_callbacks: List[ProgressCallback] = []
        self._completion_callbacks: List[CompletionCallback] = []
        self._callbacks_lock = threading.Lock()

    # === Callback Registration ===

    def register_step_callback(self, callback: StepCallback):
        """Register callback for every ledger write."""
        with self._callbacks_lock:
            self._step_callbacks.append(callback)

    def register_progress_callback(self, callback: ProgressCallback):
        """Register callback fired when a step is entered."""
        with self._callbacks_lock:
            self._progress_callbacks.append(callback)

    def register_completion_callback(self, callback: CompletionCallback):
        """Register callback for the finished report."""
        with self._callbacks_lock:
            self._completion_callbacks.append(callback)

    def _notify_step(self, step_id: str, entry: LedgerEntry):
        with self._callbacks_lock:
            callbacks = list(self._step_callbacks)
        for cb in callbacks:
            try:
                cb(step_id, entry)
            except Exception as e:
                logger.error(f"Step callback error: {e}")

    def _notify_progress(self, step_id: str, current: int, total: int):
        with self._callbacks_lock:
            callbacks = list(self._progress_callbacks)
        for cb in callbacks:
            try:
                cb(step_id, current, total)
            except Exception as e:
                logger.error(f"Progress callback error: {e}")

    def _notify_completion(self, report: DetectionReport):
        with self._callbacks_lock:
            callbacks = list(self._completion_callbacks)
        for cb in callbacks:
            try:
                cb(report)
            except Exception as e:
                logger.error(f"Completion callback error: {e}")

    # === Run Control ===

    def start(self) -> RunState:
        """Begin the run. Returns the state after the first suspension or completion."""
        with self._lock:
            session = self._session
            if session.state.phase != RunPhase.IDLE:
                self._violation(
                    f"Cannot start: run is {session.state}",
                    expected=RunPhase.IDLE.value, received=str(session.state),
                )

            session.state = RunState.running()
            session.started_at = datetime.now()
            logger.info(f"Detection run started ({len(self.steps)} steps)")
            self._advance()
            return session.state

    def resume_with_result(self, step_id: str, outcome: Any) -> RunState:
        """
        Resolve the suspended interactive step with the operator's outcome.

        Raises:
            ProtocolViolation: not suspended on `step_id`
            InvalidOutcome: outcome cannot be read for this step
        """
        with self._lock:
            step = self._require_suspended(step_id)
            try:
                measurement = coerce_outcome(
                    step.category, outcome,
                    keyboard_total_keys=self.settings.keyboard_total_keys,
                )
            except InvalidOutcome as e:
                logger.error(f"Rejected outcome for {step_id}: {e}")
                raise

            decision = derive_outcome_status(measurement)
            self._session.raw.record(measurement)
            self._resolve(step, decision.status, decision.display_value)
            return self._continue()

    def resume_with_skip(self, step_id: str) -> RunState:
        """Skip the suspended interactive step."""
        with self._lock:
            step = self._require_suspended(step_id)
            self._session.raw.mark_unmeasured(step.category, "skipped")
            self._resolve(step, StepStatus.SKIPPED, "Skipped")
            return self._continue()

    def reset(self) -> RunState:
        """Abandon the current run and return to idle with a fresh session."""
        with self._lock:
            previous = self._session.state
            self._session = DetectionSession(self.steps)
            logger.info(f"Detection run reset (was {previous})")
            return self._session.state

    # === Internals ===

    def _violation(self, message: str, expected: Optional[str] = None, received: Optional[str] = None):
        logger.error(message)
        raise ProtocolViolation(message, expected=expected, received=received)

    def _require_suspended(self, step_id: str) -> Step:
        state = self._session.state
        if not state.is_suspended:
            self._violation(
                f"Cannot resume '{step_id}': run is {state}",
                expected=RunPhase.SUSPENDED.value, received=step_id,
            )
        if state.step_id != step_id:
            self._violation(
                f"Cannot resume '{step_id}': waiting on '{state.step_id}'",
                expected=state.step_id, received=step_id,
            )
        return self.steps[self._session.cursor]

    def _continue(self) -> RunState:
        session = self._session
        session.cursor += 1
        session.state = RunState.running()
        self._advance()
        return session.state

    def _enter(self, step: Step):
        session = self._session
        entry = session.ledger.enter(step.id)
        logger.debug(f"Step {step.id}: testing")
        self._notify_progress(step.id, session.cursor + 1, len(self.steps))
        self._notify_step(step.id, entry)

    def _resolve(self, step: Step, status: StepStatus, display_value: Optional[str]):
        entry = self._session.ledger.resolve(step.id, status, display_value)
        logger.debug(f"Step {step.id}: {status.value} ({display_value})")
        self._notify_step(step.id, entry)

    def _advance(self):
        """Run steps from the cursor until an interactive step or the end."""
        session = self._session
        while session.cursor < len(self.steps):
            step = self.steps[session.cursor]
            self._enter(step)
            if step.interactive:
                session.state = RunState.suspended(step.id)
                logger.debug(f"Waiting on interactive step {step.id}")
                return
            self._run_automatic(step)
            session.cursor += 1
        self._complete()

    def _run_automatic(self, step: Step):
        result: ProbeResult = self._adapter.run(step.category)
        strict = self.settings.strict_storage_fallback
        try:
            decision = derive_probe_status(result, strict_storage_fallback=strict)
        except Exception as e:
            # A reading the status rule cannot handle counts as a failed probe
            logger.error(f"Status rule for {step.id} failed, using fallback: {e}")
            error = ProbeFailure(step.category.value, f"status rule failed ({e!r})", cause=e)
            result = ProbeResult.fail(error, step.category)
            decision = derive_probe_status(result, strict_storage_fallback=strict)

        if result:
            self._session.raw.record(result.measurement)
        else:
            reason = str(result.error) if result.error else "no data"
            self._session.raw.mark_unmeasured(step.category, reason)
            if step.category == StepCategory.STORAGE:
                logger.warning(
                    f"Storage health unknown ({reason}); step recorded as {decision.status.value}"
                )

        self._resolve(step, decision.status, decision.display_value)

    def _complete(self):
        session = self._session
        steps = session.ledger.snapshot()
        measurements = session.raw.snapshot()

        score = calculate_score(steps)
        issues = self.text_catalog.render_all(classify(measurements))
        session.report = assemble_report(steps, score, issues, measurements)
        session.state = RunState.completed()

        logger.info(f"Detection run completed: score {score}, {len(issues)} issue(s)")
        self._notify_completion(session.report)

    def _require_completed(self) -> DetectionReport:
        session = self._session
        if session.report is None:
            raise IncompleteRunAccess(str(session.state))
        return session.report

    # === Queries ===

    @property
    def state(self) -> RunState:
        return self._session.state

    @property
    def suspended_step(self) -> Optional[Step]:
        """The interactive step awaiting an outcome, if any."""
        state = self._session.state
        if not state.is_suspended:
            return None
        return self.steps[self._session.cursor]

    @property
    def ledger(self) -> Mapping[str, LedgerEntry]:
        return self._session.ledger.snapshot()

    @property
    def measurements(self) -> MeasurementSnapshot:
        return self._session.raw.snapshot()

    @property
    def score(self) -> int:
        return self._require_completed().overall_score

    @property
    def issues(self) -> Tuple[Issue, ...]:
        return self._require_completed().issues

    @property
    def report(self) -> DetectionReport:
        return self._require_completed()
