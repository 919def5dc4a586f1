"""Terminal front-end for the detection engine."""

from .detect import DetectionHarness

__all__ = ['DetectionHarness']
