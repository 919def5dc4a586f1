"""
Result Ledger

Per-step status storage for one detection run. Every catalog step has
an entry from the moment the ledger is created.

Allowed transitions:
    pending -> testing -> passed | warning | failed | skipped
    testing -> testing   (step re-entered)
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Sequence

from .errors import LedgerError
from .models import LedgerEntry, Step, StepStatus

logger = logging.getLogger(__name__)


class Ledger:
    """Mapping of step id -> LedgerEntry, owned by the orchestrator."""

    def __init__(self, steps: Sequence[Step]):
        self._entries: Dict[str, LedgerEntry] = {step.id: LedgerEntry() for step in steps}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __getitem__(self, step_id: str) -> LedgerEntry:
        return self._entries[step_id]

    @property
    def total(self) -> int:
        return len(self._entries)

    def status(self, step_id: str) -> StepStatus:
        return self._entries[step_id].status

    # === Transitions ===

    def enter(self, step_id: str) -> LedgerEntry:
        """Mark a step as being tested."""
        current = self._require(step_id)
        if current.status.is_final:
            raise LedgerError(
                f"Step '{step_id}' already resolved as {current.status.value}"
            )
        entry = LedgerEntry(StepStatus.TESTING)
        self._entries[step_id] = entry
        logger.debug(f"{step_id}: {current.status.value} -> testing")
        return entry

    def resolve(self, step_id: str, status: StepStatus, display_value: Optional[str] = None) -> LedgerEntry:
        """Record the final status of a step that is being tested."""
        current = self._require(step_id)
        if current.status != StepStatus.TESTING:
            raise LedgerError(
                f"Step '{step_id}' is {current.status.value}, expected testing"
            )
        if not status.is_final:
            raise LedgerError(f"{status.value} is not a final status")
        entry = LedgerEntry(status, display_value)
        self._entries[step_id] = entry
        logger.debug(f"{step_id}: testing -> {status.value} ({display_value})")
        return entry

    def _require(self, step_id: str) -> LedgerEntry:
        try:
            return self._entries[step_id]
        except KeyError:
            raise LedgerError(f"Unknown step '{step_id}'") from None

    # === Queries ===

    def count(self, status: StepStatus) -> int:
        return sum(1 for e in self._entries.values() if e.status == status)

    def counts(self) -> Dict[StepStatus, int]:
        """Number of steps in each status (every status present)."""
        counts = {status: 0 for status in StepStatus}
        for entry in self._entries.values():
            counts[entry.status] += 1
        return counts

    @property
    def is_settled(self) -> bool:
        """True once no step is pending or testing."""
        return all(e.status.is_final for e in self._entries.values())

    def snapshot(self) -> Mapping[str, LedgerEntry]:
        """Read-only copy of the current entries, in catalog order."""
        return MappingProxyType(dict(self._entries))
