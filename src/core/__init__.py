"""
QuickScan Core Module

This module contains:
- The detection engine (step catalog, ledger, orchestrator)
- Scoring, issue classification and report assembly
"""

from .detection import DetectionOrchestrator, DetectionSettings, ProbeSet

__all__ = [
    'DetectionOrchestrator',
    'DetectionSettings',
    'ProbeSet',
]

__version__ = '1.0.0'
