"""Configuration management with environment variable support"""

import os
from pathlib import Path

from dotenv import load_dotenv

from utils.paths import QuickScanPaths

# Load environment variables from .env (project root, then working directory)
env_file = Path(__file__).parent.parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)
load_dotenv(Path.cwd() / '.env')


def _flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


# Logging
LOG_LEVEL = os.getenv('QUICKSCAN_LOG_LEVEL', 'INFO')
LOG_FILE = os.getenv('QUICKSCAN_LOG_FILE', '')

# Reports
REPORT_DIR = QuickScanPaths.get_report_dir()
TEXT_CATALOG = os.getenv('QUICKSCAN_TEXT_CATALOG', '')

# Detection (QUICKSCAN_STRICT_STORAGE_FALLBACK is read by detection_settings)
PROBE_TIMEOUT = _int('QUICKSCAN_PROBE_TIMEOUT', 10)

# Web API
API_PORT = _int('QUICKSCAN_API_PORT', 8470)


def detection_settings():
    """DetectionSettings built from the environment at call time."""
    from core.detection import DetectionSettings

    return DetectionSettings(
        strict_storage_fallback=_flag('QUICKSCAN_STRICT_STORAGE_FALLBACK'),
    )
