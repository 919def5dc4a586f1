"""
Detection Engine Errors

Three kinds of failure matter to callers of the engine:
- ProbeFailure: an automatic probe blew up (absorbed by the orchestrator)
- ProtocolViolation: a caller resumed the wrong step or at the wrong time
- IncompleteRunAccess: a caller asked for results before the run completed
"""

from typing import Optional


class DetectionError(Exception):
    """Base class for all detection engine errors."""


class ProbeFailure(DetectionError):
    """An automatic probe raised, or returned data we could not read."""

    def __init__(self, category: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{category} probe failed: {message}")
        self.category = category
        self.cause = cause


class ProtocolViolation(DetectionError):
    """
    A resume/start call that does not match the orchestrator's state.

    Raised before anything is written, so the ledger is unchanged.
    """

    def __init__(self, message: str, expected: Optional[str] = None, received: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.received = received


class InvalidOutcome(ProtocolViolation):
    """An interactive outcome that cannot be read for the suspended step."""


class IncompleteRunAccess(DetectionError):
    """Score, issues or report requested before the run completed."""

    def __init__(self, state: str):
        super().__init__(f"Detection run not completed (state: {state})")
        self.state = state


class LedgerError(DetectionError):
    """Illegal status transition in the result ledger."""
