"""
Linux Host Probes

Reads the machine QuickScan is running on through /proc, /sys and
smartctl. Each probe returns the plain mapping the detection engine
expects, None when there is nothing to report (no battery, no disk),
or raises when the source cannot be read.

Usage:
    from probes import HostProbes

    probes = HostProbes.default()          # ProbeSet for the live system
    host = HostProbes(root=tmp_path)       # same probes over a fake tree
"""

import logging
import os
import re
import socket
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.detection import ProbeSet
from utils.paths import SystemPaths
from utils.system import command_exists, get_os_info, read_int, read_text, run_command

logger = logging.getLogger(__name__)

# Block devices that are never the internal disk
VIRTUAL_DISK_PREFIXES = ('loop', 'ram', 'zram', 'dm-', 'sr', 'md', 'fd', 'nbd')

# Words in firmware strings that mark a refurbished unit
REFURB_MARKERS = ('refurb', 'renewed', 'recertified', 'remanufactured')

DMI_FIELDS = ('sys_vendor', 'product_name', 'product_version', 'board_vendor', 'bios_version')

APPLE_DRIVE_PREFIXES = ('APPLE SSD', 'APPLE HDD', 'AP')

LOW_CYCLE_THRESHOLD = 50
HIGH_HEALTH_THRESHOLD = 95.0

SMART_PATTERNS = (
    re.compile(r'SMART overall-health self-assessment test result:\s*(.+)'),
    re.compile(r'SMART Health Status:\s*(.+)'),
)


class HostProbes:
    """Probe implementations for a Linux host, rooted at `root`."""

    def __init__(self, root: Union[str, Path] = '/', timeout: int = 10):
        self.root = Path(root)
        self.timeout = timeout

    @classmethod
    def default(cls, timeout: Optional[int] = None) -> ProbeSet:
        """ProbeSet for the live system."""
        if timeout is None:
            from utils.config import PROBE_TIMEOUT
            timeout = PROBE_TIMEOUT
        return cls(timeout=timeout).probe_set()

    def probe_set(self) -> ProbeSet:
        return ProbeSet(
            hardware=self.hardware,
            battery=self.battery,
            storage=self.storage,
            refurbishment=self.refurbishment,
            network=self.network,
            sensors=self.sensors,
        )

    def _path(self, path: Path) -> Path:
        return SystemPaths.under(self.root, path)

    # === Hardware ===

    def hardware(self) -> Dict[str, Any]:
        cpuinfo = read_text(self._path(SystemPaths.PROC_CPUINFO))
        if cpuinfo is None:
            raise RuntimeError("cannot read /proc/cpuinfo")

        model = ''
        cores = 0
        for line in cpuinfo.splitlines():
            key, _, value = line.partition(':')
            key = key.strip()
            if key == 'processor':
                cores += 1
            elif key in ('model name', 'Model', 'Hardware') and not model:
                model = value.strip()

        meminfo = self._meminfo()
        os_info = get_os_info()
        return {
            'cpu': {'model': model or 'Unknown CPU', 'cores': cores or os.cpu_count() or 0},
            'memory': {'total': meminfo.get('MemTotal', 0) * 1024},
            'serial_number': self._dmi('product_serial') or 'Unknown',
            'os_name': os_info['os_name'],
            'os_version': os_info['os_version'],
            'hostname': socket.gethostname(),
        }

    def _meminfo(self) -> Dict[str, int]:
        text = read_text(self._path(SystemPaths.PROC_MEMINFO)) or ''
        values = {}
        for line in text.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdigit():
                values[parts[0].rstrip(':')] = int(parts[1])
        return values

    def _dmi(self, name: str) -> Optional[str]:
        value = read_text(self._path(SystemPaths.DMI) / name)
        if not value or value.lower() in ('none', 'not specified', 'default string', 'to be filled by o.e.m.'):
            return None
        return value

    # === Battery ===

    def _battery_dir(self) -> Optional[Path]:
        supplies = self._path(SystemPaths.POWER_SUPPLY)
        if not supplies.is_dir():
            return None
        for entry in sorted(supplies.iterdir()):
            if read_text(entry / 'type') == 'Battery' and read_text(entry / 'scope') != 'Device':
                return entry
        return None

    def battery(self) -> Optional[Dict[str, Any]]:
        battery = self._battery_dir()
        if battery is None:
            return None

        full = read_int(battery / 'energy_full')
        design = read_int(battery / 'energy_full_design')
        if full is None or not design:
            full = read_int(battery / 'charge_full')
            design = read_int(battery / 'charge_full_design')
        if full is None or not design:
            raise RuntimeError(f"{battery.name} does not report its capacity")

        return {
            'health': round(full / design * 100, 1),
            'cycle_count': read_int(battery / 'cycle_count') or 0,
            'design_capacity': design,
            'current_capacity': full,
            'is_charging': read_text(battery / 'status') == 'Charging',
        }

    # === Storage ===

    def _primary_disk(self) -> Optional[Path]:
        block = self._path(SystemPaths.BLOCK)
        if not block.is_dir():
            return None
        disks = [
            d for d in sorted(block.iterdir())
            if not d.name.startswith(VIRTUAL_DISK_PREFIXES)
            and read_text(d / 'removable') != '1'
        ]
        # NVMe first, then SATA/SCSI, then anything else (mmc, virtio)
        disks.sort(key=lambda d: (not d.name.startswith('nvme'), not d.name.startswith('sd')))
        return disks[0] if disks else None

    def _disk_model(self, disk: Path) -> str:
        return read_text(disk / 'device' / 'model') or read_text(disk / 'device' / 'name') or 'Unknown'

    def storage(self) -> Optional[Dict[str, Any]]:
        disk = self._primary_disk()
        if disk is None:
            return None
        if not command_exists('smartctl'):
            raise RuntimeError("smartctl not installed (smartmontools)")

        result = run_command(['smartctl', '-H', f'/dev/{disk.name}'], timeout=self.timeout)
        status = parse_smart_status(result['stdout'])
        if status is None:
            detail = (result['stderr'] or result['stdout']).strip().splitlines()
            raise RuntimeError(
                f"no SMART verdict for /dev/{disk.name}: {detail[-1] if detail else 'no output'}"
            )
        return {'model': self._disk_model(disk), 'smart_status': status}

    # === Network ===

    def network(self) -> Dict[str, Any]:
        net = self._path(SystemPaths.NET)
        wifi = False
        if net.is_dir():
            wifi = any(
                (iface / 'wireless').exists() or (iface / 'phy80211').exists()
                for iface in net.iterdir()
            )
        bluetooth_dir = self._path(SystemPaths.BLUETOOTH)
        bluetooth = bluetooth_dir.is_dir() and any(bluetooth_dir.iterdir())
        return {'wifi': {'enabled': wifi}, 'bluetooth': {'available': bluetooth}}

    # === Sensors ===

    def sensors(self) -> Dict[str, Any]:
        iio = self._path(SystemPaths.IIO_DEVICES)
        if not iio.is_dir():
            return {}

        channels: List[str] = []
        for device in iio.iterdir():
            if device.is_dir():
                channels.extend(p.name for p in device.iterdir())

        def has(prefix: str) -> bool:
            return any(c.startswith(prefix) for c in channels)

        return {
            'ambient_light': has('in_illuminance'),
            'accelerometer': has('in_accel'),
            'gyroscope': has('in_anglvel'),
        }

    # === Refurbishment ===

    def refurbishment(self) -> Dict[str, Any]:
        indicators: List[Dict[str, Any]] = []
        replaced_parts: List[str] = []
        refurb_program = None
        marked = False

        def indicator(name: str, detail: Optional[str], severity: str):
            description = f"{name}:{detail}" if detail else name
            indicators.append({
                'name': name, 'detected': True,
                'description': description, 'severity': severity,
            })

        dmi = {name: self._dmi(name) for name in DMI_FIELDS}
        vendor = (dmi['sys_vendor'] or '').lower()

        # 1. Firmware strings
        for name, value in dmi.items():
            if value and any(m in value.lower() for m in REFURB_MARKERS):
                indicator('firmware_refurb', value, 'info')
                marked = True
                break

        # 2. Apple certified refurbished serials start with F
        serial = self._dmi('product_serial')
        if 'apple' in vendor and serial and serial.upper().startswith('F'):
            indicator('serial_refurb', serial, 'info')
            refurb_program = "Apple Certified Refurbished"
            marked = True

        # 3. Directory-domain enrolment
        if any(self._path(p).exists() for p in (SystemPaths.KRB5_KEYTAB, SystemPaths.SSSD_CONF)):
            indicator('enterprise_managed', None, 'warning')

        # 4. Battery hints
        battery = self._battery_dir()
        if battery is not None:
            cycles = read_int(battery / 'cycle_count')
            if cycles is not None and 0 < cycles < LOW_CYCLE_THRESHOLD:
                indicator('low_battery_cycles', f"{cycles} cycles", 'info')
            try:
                reading = self.battery()
            except RuntimeError:
                reading = None
            if reading and reading['health'] > HIGH_HEALTH_THRESHOLD:
                indicator('high_battery_health', f"{reading['health']:.1f}%", 'info')

        # 5. Non-Apple internal drive in Apple hardware
        disk = self._primary_disk()
        if 'apple' in vendor and disk is not None:
            model = self._disk_model(disk)
            if model != 'Unknown' and not model.upper().startswith(APPLE_DRIVE_PREFIXES):
                indicator('third_party_storage', model, 'warning')
                replaced_parts.append('storage')

        critical = sum(1 for i in indicators if i['severity'] == 'critical')
        warnings = sum(1 for i in indicators if i['severity'] == 'warning')
        if critical > 0 or warnings >= 2:
            confidence = 'high'
        elif warnings > 0 or len(indicators) >= 2:
            confidence = 'medium'
        else:
            confidence = 'low'

        return {
            'is_refurbished': marked or bool(replaced_parts) or warnings > 0,
            'confidence': confidence,
            'indicators': indicators,
            'replaced_parts': replaced_parts,
            'details': {
                'serial_manufacture_date': None,
                'os_install_date': self._install_date(),
                'battery_manufacture_date': None,
                'storage_first_use_date': None,
                'date_mismatch': False,
                'refurb_program': refurb_program,
            },
        }

    def _install_date(self) -> Optional[str]:
        path = self._path(SystemPaths.INSTALLER_LOG)
        try:
            return datetime.fromtimestamp(path.stat().st_mtime).date().isoformat()
        except OSError:
            return None


def parse_smart_status(output: str) -> Optional[str]:
    """SMART verdict from `smartctl -H` output ('PASSED', 'OK', 'FAILED!'...)."""
    for pattern in SMART_PATTERNS:
        match = pattern.search(output or '')
        if match:
            return match.group(1).strip()
    return None
