"""
Host Probes

Platform implementations of the probe callables the detection engine
consumes.
"""

from .host import HostProbes, parse_smart_status

__all__ = ['HostProbes', 'parse_smart_status']
