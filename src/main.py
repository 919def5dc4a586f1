#!/usr/bin/env python3
"""
QuickScan
Main entry point for the command line

Commands:
- run      Detect the local machine (interactive questions in the terminal)
- catalog  List the detection steps
- serve    Start the web API
"""

import json
import os
import sys

import click
from rich.console import Console
from rich.table import Table

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from __version__ import get_full_version
from core.detection import STEP_CATALOG, DetectionOrchestrator, IssueTextCatalog, save_report
from utils import config
from utils.console import QUICKSCAN_THEME, console, print_error, print_info, print_success, print_warning
from utils.logging_config import setup_logging
from utils.system import check_root


@click.group()
@click.version_option(get_full_version(), prog_name='quickscan')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def main(debug):
    """QuickScan laptop condition check"""
    setup_logging(
        level='DEBUG' if debug else config.LOG_LEVEL,
        log_file=config.LOG_FILE or None,
    )


@main.command()
@click.option('--skip-interactive', is_flag=True, help='Skip every interactive test')
@click.option('--json', 'as_json', is_flag=True, help='Print the report as JSON')
@click.option('--save', is_flag=True, help='Save the report under the report directory')
def run(skip_interactive, as_json, save):
    """Run a detection on this machine."""
    from cli.detect import DetectionHarness
    from probes import HostProbes

    if not as_json and not check_root():
        print_warning("Not running as root: smartctl may not be able to read SMART data")

    orchestrator = DetectionOrchestrator(
        HostProbes.default(),
        settings=config.detection_settings(),
        text_catalog=IssueTextCatalog.load(config.TEXT_CATALOG),
    )
    # Keep stdout clean for the JSON report
    harness_console = Console(theme=QUICKSCAN_THEME, stderr=True) if as_json else None
    harness = DetectionHarness(orchestrator, console=harness_console)
    report = harness.run(skip_interactive=skip_interactive)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    else:
        harness.render_report(report)

    if save:
        try:
            path = save_report(report, config.REPORT_DIR)
        except OSError as e:
            print_error(f"Could not save report: {e}")
            sys.exit(1)
        if not as_json:
            print_success(f"Report saved to {path}")


@main.command()
def catalog():
    """List the detection steps in order."""
    table = Table(show_header=True, header_style="bold magenta", title="Detection Steps")
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Category")
    table.add_column("Type")
    for i, step in enumerate(STEP_CATALOG, 1):
        table.add_row(str(i), step.name, step.category.value,
                      "interactive" if step.interactive else "automatic")
    console.print(table)


@main.command()
@click.option('--host', default='127.0.0.1', show_default=True, help='Address to bind')
@click.option('--port', default=config.API_PORT, show_default=True, type=int, help='Port to listen on')
def serve(host, port):
    """Start the detection web API."""
    from api import create_app

    app = create_app()
    print_info(f"QuickScan API on http://{host}:{port}/api/detection")
    app.run(host=host, port=port, threaded=True)


if __name__ == '__main__':
    main()
