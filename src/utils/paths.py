"""
QuickScan Path Constants

Centralized path definitions for reports and the Linux pseudo-filesystems
the host probes read.

Use get_real_user_home() instead of Path.home() for user files: under
sudo (needed for smartctl) Path.home() is /root.
"""

import os
from pathlib import Path
from typing import Union


def get_real_user_home() -> Path:
    """Home directory of the invoking user, even when running via sudo."""
    sudo_user = os.environ.get('SUDO_USER')
    if sudo_user and sudo_user != 'root':
        return Path(f'/home/{sudo_user}')
    return Path.home()


class QuickScanPaths:
    """Paths related to the QuickScan application"""

    @classmethod
    def get_data_dir(cls) -> Path:
        return get_real_user_home() / '.local' / 'share' / 'quickscan'

    @classmethod
    def get_report_dir(cls) -> Path:
        """Report directory, QUICKSCAN_REPORT_DIR if set."""
        configured = os.environ.get('QUICKSCAN_REPORT_DIR')
        if configured:
            return Path(configured).expanduser()
        return cls.get_data_dir() / 'reports'


class SystemPaths:
    """Kernel interfaces read by the host probes"""

    PROC_CPUINFO = Path('/proc/cpuinfo')
    PROC_MEMINFO = Path('/proc/meminfo')

    DMI = Path('/sys/class/dmi/id')
    POWER_SUPPLY = Path('/sys/class/power_supply')
    BLOCK = Path('/sys/block')
    NET = Path('/sys/class/net')
    BLUETOOTH = Path('/sys/class/bluetooth')
    IIO_DEVICES = Path('/sys/bus/iio/devices')

    INSTALLER_LOG = Path('/var/log/installer')
    KRB5_KEYTAB = Path('/etc/krb5.keytab')
    SSSD_CONF = Path('/etc/sssd/sssd.conf')

    @staticmethod
    def under(root: Union[str, Path], path: Path) -> Path:
        """Re-anchor an absolute system path below `root` (for tests/chroots)."""
        return Path(root) / path.relative_to('/')
