"""
QuickScan Logging Configuration

One place to configure the root logger for the CLI and the web API.

Usage:
    from utils.logging_config import setup_logging
    setup_logging(level=logging.DEBUG, log_file="/tmp/quickscan.log")

Library modules never call this; they only do
    logger = logging.getLogger(__name__)
"""

import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import Optional, Union

# Thread-safe initialization
_initialized = False
_lock = threading.Lock()

DEFAULT_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DEBUG_FORMAT = "%(asctime)s | %(name)s:%(lineno)d | %(levelname)s | %(message)s"

LEVEL_COLORS = {
    'DEBUG': '\033[36m',     # Cyan
    'INFO': '\033[32m',      # Green
    'WARNING': '\033[33m',   # Yellow
    'ERROR': '\033[31m',     # Red
    'CRITICAL': '\033[35m',  # Magenta
}
RESET = '\033[0m'

NOISY_LOGGERS = ('urllib3', 'werkzeug', 'flask', 'asyncio')


class ColoredFormatter(logging.Formatter):
    """Colors the level name when writing to a terminal."""

    def __init__(self, fmt=None, datefmt=None, use_colors=True, stream=None):
        super().__init__(fmt, datefmt)
        stream = stream or sys.stderr
        self.use_colors = use_colors and hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record):
        if not self.use_colors or record.levelname not in LEVEL_COLORS:
            return super().format(record)
        # Color a copy so file handlers still see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{LEVEL_COLORS[record.levelname]}{record.levelname}{RESET}"
        return super().format(colored)


def parse_level(level: Union[int, str]) -> int:
    """Accept logging.DEBUG or 'debug'; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    use_colors: bool = True,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
    force: bool = False,
) -> None:
    """
    Configure the root logger once.

    Args:
        level: Logging level, as int or name
        log_file: Optional rotating log file
        log_format: Format string; DEBUG_FORMAT is used at DEBUG level
        use_colors: Color level names on a terminal
        max_bytes: Max log file size before rotation
        backup_count: Number of rotated files to keep
        force: Reconfigure even if already set up
    """
    global _initialized

    with _lock:
        if _initialized and not force:
            return

        level = parse_level(level)
        if log_format is None:
            log_format = DEBUG_FORMAT if level <= logging.DEBUG else DEFAULT_FORMAT

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ColoredFormatter(log_format, use_colors=use_colors))
        root_logger.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(log_format))
            root_logger.addHandler(file_handler)

        for lib_name in NOISY_LOGGERS:
            logging.getLogger(lib_name).setLevel(logging.WARNING)

        _initialized = True
