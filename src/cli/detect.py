"""
Terminal Detection Harness

Runs a detection on the local machine and asks the operator the
interactive questions with rich prompts. Answering 's' skips a step.

Usage:
    harness = DetectionHarness(DetectionOrchestrator(HostProbes.default()))
    report = harness.run()
    harness.render_report(report)
"""

import logging
from typing import Any, Callable, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from core.detection import (
    DetectionOrchestrator, DetectionReport, IssueSeverity, LedgerEntry, StepCategory,
    StepStatus, get_step,
)
from utils.console import get_console, status_markup

logger = logging.getLogger(__name__)

# Returned by a question handler to skip the step
SKIP = object()

# Asks a yes/no/skip question; returns True, False or None for skip
YesNoAsker = Callable[[str], Optional[bool]]
CountAsker = Callable[[str, int], int]


def ask_yes_no(question: str) -> Optional[bool]:
    answer = Prompt.ask(f"[cyan]{question}[/cyan] [dim](s = skip)[/dim]",
                        choices=["y", "n", "s"], default="y")
    if answer == "s":
        return None
    return answer == "y"


def ask_count(question: str, maximum: int) -> int:
    while True:
        value = IntPrompt.ask(f"[cyan]{question}[/cyan]", default=maximum)
        if 0 <= value <= maximum:
            return value
        get_console().print(f"[warning]Enter a number between 0 and {maximum}[/warning]")


class DetectionHarness:
    """Drives an orchestrator from the terminal."""

    def __init__(self, orchestrator: DetectionOrchestrator,
                 console: Optional[Console] = None,
                 ask: YesNoAsker = ask_yes_no,
                 ask_number: CountAsker = ask_count):
        self.orchestrator = orchestrator
        self.console = console or get_console()
        self.ask = ask
        self.ask_number = ask_number
        self._questions: Dict[StepCategory, Callable[[], Any]] = {
            StepCategory.SCREEN: self._screen,
            StepCategory.KEYBOARD: self._keyboard,
            StepCategory.TRACKPAD: self._trackpad,
            StepCategory.CAMERA: self._camera,
            StepCategory.MICROPHONE: self._microphone,
            StepCategory.SPEAKER: self._speaker,
        }
        orchestrator.register_step_callback(self._on_step)

    # === Run ===

    def run(self, skip_interactive: bool = False) -> DetectionReport:
        """Run to completion and return the report."""
        self.console.print("\n[heading]QuickScan Device Detection[/heading]\n")
        state = self.orchestrator.start()

        while state.is_suspended:
            step = get_step(state.step_id)
            if skip_interactive:
                state = self.orchestrator.resume_with_skip(step.id)
                continue

            self.console.print(f"\n[testing]{step.name} test[/testing]")
            outcome = self._questions[step.category]()
            if outcome is SKIP:
                state = self.orchestrator.resume_with_skip(step.id)
            else:
                state = self.orchestrator.resume_with_result(step.id, outcome)

        return self.orchestrator.report

    def _on_step(self, step_id: str, entry: LedgerEntry):
        if not entry.status.is_final:
            return
        name = get_step(step_id).name
        value = f" [dim]{entry.display_value}[/dim]" if entry.display_value else ""
        self.console.print(f"  {status_markup(entry.status.value)}  {name}{value}")

    # === Questions ===

    def _screen(self):
        self.console.print("Switch the screen to full-screen solid colours and look for odd pixels.")
        answer = self.ask("Did you see any dead or stuck pixels?")
        return SKIP if answer is None else {'has_dead_pixel': answer}

    def _keyboard(self):
        total = self.orchestrator.settings.keyboard_total_keys
        self.console.print(f"Press each of the {total} keys on the layout once.")
        answer = self.ask(f"Did all {total} keys register?")
        if answer is None:
            return SKIP
        tested = total if answer else self.ask_number("How many keys registered?", total)
        return {'tested_count': tested, 'total_keys': total}

    def _trackpad(self):
        results = {}
        for name, question in (
            ('click', "Does clicking work?"),
            ('drag', "Does click-and-drag work?"),
            ('gesture', "Do two-finger scroll and gestures work?"),
        ):
            answer = self.ask(question)
            if answer is None:
                return SKIP
            results[name] = answer
        return results

    def _camera(self):
        answer = self.ask("Open a camera app. Do you see a live picture?")
        return SKIP if answer is None else {'working': answer}

    def _microphone(self):
        answer = self.ask("Record a few seconds of speech. Does it play back?")
        return SKIP if answer is None else {'working': answer}

    def _speaker(self):
        results = {}
        for channel in ('left', 'right'):
            answer = self.ask(f"Play a {channel}-channel test tone. Do you hear it on the {channel}?")
            if answer is None:
                return SKIP
            results[channel] = answer
        return results

    # === Output ===

    def render_report(self, report: DetectionReport):
        label = report.score_label
        self.console.print(Panel(
            f"[{label}]{report.overall_score}/100 ({label})[/{label}]\n"
            f"[dim]{report.device_overview.model} | {report.device_overview.os} | "
            f"S/N {report.device_overview.serial_number}[/dim]",
            title="Overall Score",
            expand=False,
        ))

        summary = report.summary
        self.console.print(
            f"[passed]{summary.passed} passed[/passed]  "
            f"[warning]{summary.warning} warning[/warning]  "
            f"[failed]{summary.failed} failed[/failed]  "
            f"[skipped]{summary.skipped} skipped[/skipped]"
        )
        if report.battery_rating:
            self.console.print(f"Battery: [{report.battery_rating}]{report.battery_rating}[/{report.battery_rating}]")

        table = Table(show_header=True, header_style="bold magenta", title="Steps")
        table.add_column("Step", style="cyan")
        table.add_column("Status")
        table.add_column("Result", style="white")
        for step_id, entry in report.steps.items():
            table.add_row(get_step(step_id).name, status_markup(entry.status.value), entry.display_value or "")
        self.console.print(table)

        if not report.issues:
            self.console.print("\n[success]No issues found[/success]")
            return

        issues = Table(show_header=True, header_style="bold magenta", title="Issues")
        issues.add_column("Severity")
        issues.add_column("Issue", style="bold")
        issues.add_column("Details")
        issues.add_column("Suggestion", style="dim")
        for issue in report.issues:
            severity = StepStatus.FAILED.value if issue.severity == IssueSeverity.FAILED else StepStatus.WARNING.value
            issues.add_row(status_markup(severity), issue.title, issue.description, issue.suggestion)
        self.console.print(issues)
