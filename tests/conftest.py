"""
Shared fixtures for QuickScan tests.

Probe data mirrors what the host probes return for a healthy laptop.
"""

import copy
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.detection import ProbeSet


GOOD_READINGS = {
    'hardware': {
        'cpu': {'model': 'Intel Core i7-1165G7', 'cores': 8},
        'memory': {'total': 16 * 1024 ** 3},
        'serial_number': 'PF2ABCDE',
        'os_name': 'Ubuntu',
        'os_version': '22.04',
        'hostname': 'bench',
    },
    'battery': {
        'health': 92.0,
        'cycle_count': 120,
        'design_capacity': 57000,
        'current_capacity': 52440,
        'is_charging': False,
    },
    'storage': {'model': 'Samsung SSD 980', 'smart_status': 'PASSED'},
    'refurbishment': {
        'is_refurbished': False,
        'confidence': 'low',
        'indicators': [],
        'replaced_parts': [],
        'details': {},
    },
    'network': {'wifi': {'enabled': True}, 'bluetooth': {'available': True}},
    'sensors': {'ambient_light': True, 'accelerometer': False},
}

ALL_PASS_OUTCOMES = {
    'screen': {'has_dead_pixel': False},
    'keyboard': {'tested_count': 77, 'total_keys': 77},
    'trackpad': {'click': True, 'drag': True, 'gesture': True},
    'camera': True,
    'microphone': {'working': True},
    'speaker': {'left': True, 'right': True},
}


def _returning(data):
    def probe():
        return copy.deepcopy(data)
    return probe


@pytest.fixture
def make_probes():
    """
    Factory for a ProbeSet of healthy readings.

    Overrides may be a mapping (returned by the probe), None (probe
    returns None) or a callable (used as the probe).
    """
    def factory(**overrides):
        probes = {}
        for category, data in GOOD_READINGS.items():
            value = overrides.get(category, data)
            probes[category] = value if callable(value) else _returning(value)
        return ProbeSet(**probes)
    return factory


@pytest.fixture
def good_probes(make_probes):
    return make_probes()


@pytest.fixture
def all_pass_outcomes():
    return copy.deepcopy(ALL_PASS_OUTCOMES)


def failing_probe(message='device not responding'):
    def probe():
        raise RuntimeError(message)
    return probe


@pytest.fixture
def raising():
    """Factory for a probe that raises RuntimeError."""
    return failing_probe
