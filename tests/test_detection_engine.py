"""
Tests for the detection orchestrator.

Run with: python3 -m pytest tests/test_detection_engine.py -v
"""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.detection import (
    DetectionOrchestrator,
    DetectionSettings,
    IncompleteRunAccess,
    InvalidOutcome,
    IssueSeverity,
    IssueTextCatalog,
    ProtocolViolation,
    RunPhase,
    StepCategory,
    StepStatus,
)
from core.detection import status_rules


def run_to_end(orchestrator, outcomes, skip=()):
    """Answer every interactive step from `outcomes`, skipping ids in `skip`."""
    state = orchestrator.start()
    while state.is_suspended:
        if state.step_id in skip:
            state = orchestrator.resume_with_skip(state.step_id)
        else:
            state = orchestrator.resume_with_result(state.step_id, outcomes[state.step_id])
    return orchestrator.report


class TestRunLifecycle:
    """Start, suspend, resume, complete."""

    def test_initially_idle(self, good_probes):
        """A new orchestrator is idle with every step pending."""
        orchestrator = DetectionOrchestrator(good_probes)
        assert orchestrator.state.phase == RunPhase.IDLE
        assert all(e.status == StepStatus.PENDING for e in orchestrator.ledger.values())

    def test_start_suspends_at_screen(self, good_probes):
        """Automatic steps resolve, then the run waits on the screen test."""
        orchestrator = DetectionOrchestrator(good_probes)
        state = orchestrator.start()

        assert state.is_suspended
        assert state.step_id == 'screen'
        assert orchestrator.suspended_step.id == 'screen'
        ledger = orchestrator.ledger
        for step_id in ('hardware', 'battery', 'storage', 'refurbishment', 'network'):
            assert ledger[step_id].status == StepStatus.PASSED
        assert ledger['screen'].status == StepStatus.TESTING
        assert ledger['sensors'].status == StepStatus.PENDING

    def test_all_pass(self, good_probes, all_pass_outcomes):
        """Healthy probes and passing tests score 100 with no issues."""
        orchestrator = DetectionOrchestrator(good_probes)
        report = run_to_end(orchestrator, all_pass_outcomes)

        assert orchestrator.state.is_completed
        assert orchestrator.score == 100
        assert orchestrator.issues == ()
        assert report.summary.passed == 12
        assert report.score_label == 'excellent'
        assert report.battery_rating == 'excellent'
        assert report.device_overview.os == 'Ubuntu 22.04'

    def test_ledger_totals_at_completion(self, good_probes, all_pass_outcomes):
        """Nothing is pending or testing once completed."""
        orchestrator = DetectionOrchestrator(good_probes)
        run_to_end(orchestrator, all_pass_outcomes, skip={'camera'})
        statuses = [e.status for e in orchestrator.ledger.values()]
        assert len(statuses) == 12
        assert StepStatus.PENDING not in statuses
        assert StepStatus.TESTING not in statuses

    def test_skip_all_interactive(self, good_probes):
        """Skipping every interactive step scores 50 with no interactive issues."""
        orchestrator = DetectionOrchestrator(good_probes)
        report = run_to_end(orchestrator, {}, skip={
            'screen', 'keyboard', 'trackpad', 'camera', 'microphone', 'speaker',
        })

        assert report.overall_score == 50
        assert report.summary.skipped == 6
        assert report.issues == ()
        assert report.measurements.unmeasured['keyboard'] == 'skipped'
        assert report.steps['speaker'].status == StepStatus.SKIPPED

    def test_outcomes_drive_statuses(self, good_probes, all_pass_outcomes):
        """Failing operator answers show up in ledger and issues."""
        all_pass_outcomes['camera'] = {'working': False}
        all_pass_outcomes['trackpad'] = {'click': True, 'drag': False, 'gesture': True}
        orchestrator = DetectionOrchestrator(good_probes)
        report = run_to_end(orchestrator, all_pass_outcomes)

        assert report.steps['camera'].status == StepStatus.FAILED
        assert report.steps['trackpad'].status == StepStatus.WARNING
        # (10 passed + 0.5) / 12
        assert report.overall_score == 88
        assert [i.rule_id for i in report.issues] == ['trackpad.malfunction', 'camera.not_working']
        assert report.issues[1].severity == IssueSeverity.FAILED
        assert report.issues[0].description == 'The following functions failed: drag'

    def test_report_built_once(self, good_probes, all_pass_outcomes):
        """The same report object is returned on every access."""
        orchestrator = DetectionOrchestrator(good_probes)
        report = run_to_end(orchestrator, all_pass_outcomes)
        assert orchestrator.report is report


class TestBatteryScenarios:
    """Battery readings end to end."""

    @pytest.mark.parametrize("health,status,severity", [
        (55, StepStatus.FAILED, IssueSeverity.FAILED),
        (75, StepStatus.WARNING, IssueSeverity.WARNING),
    ])
    def test_low_health(self, make_probes, all_pass_outcomes, health, status, severity):
        """Low health sets both the step status and an issue."""
        probes = make_probes(battery={'health': health, 'cycle_count': 100})
        report = run_to_end(DetectionOrchestrator(probes), all_pass_outcomes)

        assert report.steps['battery'].status == status
        assert [(i.rule_id, i.severity) for i in report.issues] == [('battery.health', severity)]

    def test_high_cycles(self, make_probes, all_pass_outcomes):
        """850 cycles is a failed issue but does not change the step status."""
        probes = make_probes(battery={'health': 90, 'cycle_count': 850})
        report = run_to_end(DetectionOrchestrator(probes), all_pass_outcomes)

        assert report.steps['battery'].status == StepStatus.PASSED
        assert [(i.rule_id, i.severity) for i in report.issues] == [
            ('battery.cycle_count', IssueSeverity.FAILED)
        ]

    def test_no_battery(self, make_probes, all_pass_outcomes):
        """A desktop without battery gets the unreadable fallback."""
        report = run_to_end(DetectionOrchestrator(make_probes(battery=None)), all_pass_outcomes)
        assert report.steps['battery'].status == StepStatus.WARNING
        assert report.steps['battery'].display_value == 'Battery unreadable'
        assert report.battery_rating is None
        assert report.measurements.unmeasured['battery'] == 'no data'


class TestProbeFailures:
    """Probe failures are absorbed."""

    def test_failures_never_abort(self, make_probes, raising, all_pass_outcomes):
        """Every probe raising still completes the run."""
        probes = make_probes(**{c: raising() for c in (
            'hardware', 'battery', 'storage', 'refurbishment', 'network', 'sensors')})
        orchestrator = DetectionOrchestrator(probes)
        report = run_to_end(orchestrator, all_pass_outcomes)

        assert orchestrator.state.is_completed
        assert report.steps['hardware'].status == StepStatus.FAILED
        assert report.steps['battery'].status == StepStatus.WARNING
        assert report.steps['storage'].status == StepStatus.PASSED
        assert report.steps['sensors'].status == StepStatus.PASSED
        assert report.issues == ()
        assert report.device_overview.model == 'Unknown'
        assert 'hardware probe failed' in report.measurements.unmeasured['hardware']

    def test_storage_fallback_logged(self, make_probes, raising, all_pass_outcomes, caplog):
        """The optimistic storage fallback is flagged in the ledger and the log."""
        with caplog.at_level(logging.WARNING):
            report = run_to_end(DetectionOrchestrator(make_probes(storage=raising())), all_pass_outcomes)

        assert report.steps['storage'].status == StepStatus.PASSED
        assert report.steps['storage'].display_value == 'SMART: not readable'
        assert 'Storage health unknown' in caplog.text

    def test_strict_storage_fallback(self, make_probes, raising, all_pass_outcomes):
        """Strict mode records the storage failure as a warning."""
        orchestrator = DetectionOrchestrator(
            make_probes(storage=raising()),
            settings=DetectionSettings(strict_storage_fallback=True),
        )
        report = run_to_end(orchestrator, all_pass_outcomes)
        assert report.steps['storage'].status == StepStatus.WARNING
        assert report.overall_score == 96

    @pytest.mark.parametrize("health", [float('nan'), float('inf')])
    def test_non_finite_battery_health(self, make_probes, all_pass_outcomes, health):
        """A NaN or infinite health is unreadable data, not a crash."""
        orchestrator = DetectionOrchestrator(make_probes(battery={'health': health, 'cycle_count': 100}))
        report = run_to_end(orchestrator, all_pass_outcomes)

        assert orchestrator.state.is_completed
        assert report.steps['battery'].status == StepStatus.WARNING
        assert report.steps['battery'].display_value == 'Battery unreadable'
        assert 'unreadable data' in report.measurements.unmeasured['battery']
        assert report.battery_rating is None

    def test_status_rule_error_uses_fallback(self, make_probes, all_pass_outcomes, monkeypatch, caplog):
        """A status rule that raises is logged and the category falls back."""
        def broken_rule(reading):
            raise ArithmeticError("bad reading")

        monkeypatch.setitem(status_rules.AUTOMATIC_RULES, StepCategory.BATTERY, broken_rule)
        orchestrator = DetectionOrchestrator(make_probes())
        with caplog.at_level(logging.ERROR):
            report = run_to_end(orchestrator, all_pass_outcomes)

        assert orchestrator.state.is_completed
        assert report.steps['battery'].status == StepStatus.WARNING
        assert report.steps['battery'].display_value == 'Battery unreadable'
        assert 'status rule failed' in report.measurements.unmeasured['battery']
        assert report.measurements.battery is None
        assert 'Status rule for battery failed' in caplog.text

    def test_status_rule_error_honours_strict_storage(self, make_probes, all_pass_outcomes, monkeypatch):
        def broken_rule(reading):
            raise ValueError("bad reading")

        monkeypatch.setitem(status_rules.AUTOMATIC_RULES, StepCategory.STORAGE, broken_rule)
        orchestrator = DetectionOrchestrator(
            make_probes(), settings=DetectionSettings(strict_storage_fallback=True)
        )
        report = run_to_end(orchestrator, all_pass_outcomes)
        assert report.steps['storage'].status == StepStatus.WARNING
        assert report.steps['storage'].display_value == 'SMART: not readable'

    def test_failed_smart_is_issue(self, make_probes, all_pass_outcomes):
        """A failing drive warns the step and fails the issue."""
        probes = make_probes(storage={'model': 'ST1000', 'smart_status': 'FAILED!'})
        report = run_to_end(DetectionOrchestrator(probes), all_pass_outcomes)
        assert report.steps['storage'].status == StepStatus.WARNING
        assert report.issues[0].rule_id == 'storage.smart'
        assert report.issues[0].severity == IssueSeverity.FAILED


class TestProtocol:
    """Protocol violations."""

    def test_mismatched_resume(self, good_probes):
        """Resuming the wrong step raises and leaves the ledger alone."""
        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.start()
        before = dict(orchestrator.ledger)

        with pytest.raises(ProtocolViolation) as exc_info:
            orchestrator.resume_with_result('keyboard', {'tested_count': 77})

        assert exc_info.value.expected == 'screen'
        assert exc_info.value.received == 'keyboard'
        assert dict(orchestrator.ledger) == before
        assert orchestrator.state.step_id == 'screen'

    def test_mismatched_skip(self, good_probes):
        """Skipping the wrong step raises too."""
        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.start()
        with pytest.raises(ProtocolViolation):
            orchestrator.resume_with_skip('camera')
        assert orchestrator.ledger['camera'].status == StepStatus.PENDING

    def test_resume_when_idle(self, good_probes):
        """Nothing to resume before start."""
        with pytest.raises(ProtocolViolation):
            DetectionOrchestrator(good_probes).resume_with_skip('screen')

    def test_start_twice(self, good_probes):
        """start() only from idle."""
        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.start()
        with pytest.raises(ProtocolViolation):
            orchestrator.start()

    def test_invalid_outcome(self, good_probes):
        """Unreadable outcomes are rejected without writing."""
        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.start()
        before = dict(orchestrator.ledger)

        with pytest.raises(InvalidOutcome):
            orchestrator.resume_with_result('screen', 'looks fine')

        assert dict(orchestrator.ledger) == before
        assert orchestrator.state.is_suspended
        # The step can still be answered afterwards
        orchestrator.resume_with_result('screen', {'has_dead_pixel': False})
        assert orchestrator.state.step_id == 'keyboard'

    def test_invalid_outcome_is_protocol_violation(self):
        """InvalidOutcome can be caught as ProtocolViolation."""
        assert issubclass(InvalidOutcome, ProtocolViolation)

    def test_results_before_completion(self, good_probes):
        """Score, issues and report need a completed run."""
        orchestrator = DetectionOrchestrator(good_probes)
        with pytest.raises(IncompleteRunAccess):
            orchestrator.score
        orchestrator.start()
        with pytest.raises(IncompleteRunAccess) as exc_info:
            orchestrator.report
        assert exc_info.value.state == 'suspended(screen)'
        with pytest.raises(IncompleteRunAccess):
            orchestrator.issues


class TestReset:
    """reset()."""

    def test_reset_midway(self, good_probes):
        """Reset discards the run and allows a new start."""
        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.start()
        orchestrator.resume_with_skip('screen')

        state = orchestrator.reset()
        assert state.phase == RunPhase.IDLE
        assert all(e.status == StepStatus.PENDING for e in orchestrator.ledger.values())
        assert orchestrator.measurements.hardware is None

        assert orchestrator.start().step_id == 'screen'

    def test_reset_after_completion(self, good_probes, all_pass_outcomes):
        """A completed run can be replaced by a fresh one."""
        orchestrator = DetectionOrchestrator(good_probes)
        first = run_to_end(orchestrator, all_pass_outcomes)
        orchestrator.reset()
        with pytest.raises(IncompleteRunAccess):
            orchestrator.report
        second = run_to_end(orchestrator, all_pass_outcomes)
        assert second.id != first.id


class TestCallbacks:
    """Observer callbacks."""

    def test_progress_and_completion(self, good_probes, all_pass_outcomes):
        """Progress fires per step, completion once."""
        progress = []
        completed = []
        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.register_progress_callback(lambda step_id, i, total: progress.append((step_id, i, total)))
        orchestrator.register_completion_callback(completed.append)

        report = run_to_end(orchestrator, all_pass_outcomes)

        assert [p[1] for p in progress] == list(range(1, 13))
        assert progress[0] == ('hardware', 1, 12)
        assert completed == [report]

    def test_step_callback_sees_every_write(self, good_probes, all_pass_outcomes):
        """Each step is reported as testing, then final."""
        writes = []
        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.register_step_callback(lambda step_id, entry: writes.append((step_id, entry.status)))
        run_to_end(orchestrator, all_pass_outcomes)

        assert len(writes) == 24
        assert writes[0] == ('hardware', StepStatus.TESTING)
        assert writes[1] == ('hardware', StepStatus.PASSED)

    def test_failing_callback_does_not_break_run(self, good_probes, all_pass_outcomes, caplog):
        """Callback errors are logged and ignored."""
        def broken(*args):
            raise RuntimeError('listener bug')

        orchestrator = DetectionOrchestrator(good_probes)
        orchestrator.register_step_callback(broken)
        orchestrator.register_completion_callback(broken)
        with caplog.at_level(logging.ERROR):
            run_to_end(orchestrator, all_pass_outcomes)

        assert orchestrator.state.is_completed
        assert 'Step callback error: listener bug' in caplog.text


class TestTextCatalogInjection:
    """Custom issue texts."""

    def test_custom_catalog_used(self, make_probes, all_pass_outcomes):
        """The orchestrator renders issues with the catalog it was given."""
        catalog = IssueTextCatalog(rules={'battery.health': {'title': 'Weak battery'}})
        probes = make_probes(battery={'health': 70, 'cycle_count': 10})
        report = run_to_end(DetectionOrchestrator(probes, text_catalog=catalog), all_pass_outcomes)
        assert report.issues[0].title == 'Weak battery'

    def test_malformed_template_does_not_stall_run(self, make_probes, all_pass_outcomes):
        """A broken override falls back to the built-in text and the run completes."""
        catalog = IssueTextCatalog(rules={'battery.health': {'title': 'Low {health'}})
        orchestrator = DetectionOrchestrator(
            make_probes(battery={'health': 70, 'cycle_count': 10}), text_catalog=catalog
        )
        report = run_to_end(orchestrator, all_pass_outcomes)

        assert orchestrator.state.is_completed
        assert report.issues[0].title == 'Low Battery Health'

    def test_template_failing_on_values_does_not_stall_run(self, make_probes, all_pass_outcomes):
        catalog = IssueTextCatalog(rules={'battery.health': {'description': 'At {health.percent}'}})
        orchestrator = DetectionOrchestrator(
            make_probes(battery={'health': 70, 'cycle_count': 10}), text_catalog=catalog
        )
        report = run_to_end(orchestrator, all_pass_outcomes)

        assert orchestrator.state.is_completed
        assert report.issues[0].description.startswith('Current battery health is 70%')
