"""Version information for QuickScan"""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)
__release_date__ = "2026-10-18"

# Version history
VERSION_HISTORY = [
    {
        "version": "1.0.0",
        "date": "2026-10-18",
        "changes": [
            "Twelve-step detection with resumable interactive steps",
            "Scored report with issues and suggestions",
            "Linux host probes (sysfs, smartctl, distro)",
            "Terminal harness and web API",
        ]
    },
]


def get_full_version():
    """Get full version string with date"""
    return f"{__version__} ({__release_date__})"
