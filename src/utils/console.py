"""
QuickScan Console Manager

Provides a singleton Rich Console instance so the CLI harness renders
with one theme.

Usage:
    from utils.console import console
    console.print("[passed]Passed[/passed]")
"""

import threading
from typing import Optional

from rich.console import Console
from rich.theme import Theme

# Thread-safe singleton
_console: Optional[Console] = None
_lock = threading.Lock()

QUICKSCAN_THEME = Theme({
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "red bold",
    "heading": "bold magenta",
    "dim": "dim white",
    # Step statuses
    "pending": "dim white",
    "testing": "bold cyan",
    "passed": "green",
    "failed": "red bold",
    "skipped": "dim yellow",
    # Score labels
    "excellent": "bold green",
    "good": "green",
    "fair": "yellow",
    "poor": "red bold",
})

STATUS_ICONS = {
    "pending": "·",
    "testing": "…",
    "passed": "✓",
    "warning": "⚠",
    "failed": "✗",
    "skipped": "↷",
}


def get_console(force_terminal: bool = None,
                no_color: bool = None,
                width: int = None) -> Console:
    """Get the shared Console instance, creating it on first use."""
    global _console

    if _console is None:
        with _lock:
            if _console is None:
                _console = Console(
                    theme=QUICKSCAN_THEME,
                    force_terminal=force_terminal,
                    no_color=no_color,
                    width=width,
                    highlight=False,
                    markup=True,
                )

    return _console


def reset_console():
    """Reset the console singleton (useful for testing)."""
    global _console
    with _lock:
        _console = None


console = get_console()


def status_markup(status: str) -> str:
    """Rich markup for a step status value, e.g. '[passed]✓ passed[/passed]'."""
    icon = STATUS_ICONS.get(status, "?")
    return f"[{status}]{icon} {status}[/{status}]"


def print_success(message: str):
    console.print(f"[success]✓ {message}[/success]")


def print_error(message: str):
    console.print(f"[error]✗ {message}[/error]")


def print_warning(message: str):
    console.print(f"[warning]⚠ {message}[/warning]")


def print_info(message: str):
    console.print(f"[info]ℹ {message}[/info]")

