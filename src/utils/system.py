"""System utilities for OS detection and reading kernel interfaces"""

import os
import platform
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Union

import distro


def check_root():
    """Check if running with root privileges"""
    return os.geteuid() == 0


def get_os_info():
    """OS name and version, as shown in the report"""
    return {
        'os_name': distro.name() or platform.system() or 'Unknown Linux',
        'os_version': distro.version() or platform.release() or '',
    }


def read_text(path: Union[str, Path]) -> Optional[str]:
    """Stripped file contents, or None if the file is missing or unreadable"""
    try:
        with open(path, 'r', errors='replace') as f:
            return f.read().strip('\x00').strip()
    except OSError:
        return None


def read_int(path: Union[str, Path]) -> Optional[int]:
    """Integer file contents (sysfs style), or None"""
    text = read_text(path)
    if not text:
        return None
    try:
        return int(text.split()[0])
    except ValueError:
        return None


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def run_command(command, shell=False, capture_output=True, timeout=30):
    """Run a system command and return the result"""
    try:
        if isinstance(command, str) and not shell:
            command = command.split()

        result = subprocess.run(
            command,
            shell=shell,
            capture_output=capture_output,
            text=True,
            timeout=timeout
        )

        return {
            'returncode': result.returncode,
            'stdout': result.stdout,
            'stderr': result.stderr,
            'success': result.returncode == 0
        }
    except subprocess.TimeoutExpired:
        return {
            'returncode': -1,
            'stdout': '',
            'stderr': 'Command timed out',
            'success': False
        }
    except OSError as e:
        return {
            'returncode': -1,
            'stdout': '',
            'stderr': str(e),
            'success': False
        }
