"""
Score Calculator

score = round(((passed + warning * 0.5) / total_steps) * 100)

Skipped, failed, pending and testing steps add nothing to the
numerator but still count in total_steps.
"""

import math
from typing import Mapping

from .models import LedgerEntry, StepStatus

WARNING_WEIGHT = 0.5


def calculate_score(entries: Mapping[str, LedgerEntry]) -> int:
    """Overall condition score, an integer in [0, 100]."""
    total = len(entries)
    if total == 0:
        return 0

    passed = sum(1 for e in entries.values() if e.status == StepStatus.PASSED)
    warning = sum(1 for e in entries.values() if e.status == StepStatus.WARNING)
    ratio = (passed + warning * WARNING_WEIGHT) / total
    # Half-up rounding; round() would round 0.5 to even
    return int(math.floor(ratio * 100 + 0.5))


def score_label(score: int) -> str:
    """Coarse label for a score."""
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"
