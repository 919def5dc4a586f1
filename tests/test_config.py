"""
Tests for configuration, paths, logging setup and console helpers.

Run: python3 -m pytest tests/test_config.py -v
"""

import logging
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from utils import config, logging_config
from utils.console import get_console, reset_console, status_markup
from utils.logging_config import parse_level, setup_logging
from utils.paths import QuickScanPaths, SystemPaths, get_real_user_home
from utils.system import read_int, read_text, run_command


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging_config._initialized = False


class TestParseLevel:
    """Tests for parse_level."""

    @pytest.mark.parametrize("value,expected", [
        (logging.DEBUG, logging.DEBUG),
        ('debug', logging.DEBUG),
        (' WARNING ', logging.WARNING),
        ('nonsense', logging.INFO),
    ])
    def test_parse(self, value, expected):
        assert parse_level(value) == expected


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_file_handler(self, tmp_path, restore_root_logger):
        """A log file gets a rotating handler and receives records."""
        log_file = tmp_path / 'logs' / 'quickscan.log'
        setup_logging(level='INFO', log_file=str(log_file), force=True)

        logging.getLogger('quickscan.test').info('probe finished')
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert log_file.exists()
        assert 'probe finished' in log_file.read_text()

    def test_only_once_without_force(self, restore_root_logger):
        """A second call is ignored unless forced."""
        setup_logging(level='INFO', force=True)
        setup_logging(level='DEBUG')
        assert logging.getLogger().level == logging.INFO

    def test_noisy_loggers_quieted(self, restore_root_logger):
        setup_logging(level='DEBUG', force=True)
        assert logging.getLogger('werkzeug').level == logging.WARNING


class TestPaths:
    """Tests for path helpers."""

    def test_with_sudo_user(self):
        """Reports go to the invoking user's home under sudo."""
        with patch.dict(os.environ, {'SUDO_USER': 'tech'}):
            assert get_real_user_home() == Path('/home/tech')

    def test_report_dir_override(self, monkeypatch, tmp_path):
        """QUICKSCAN_REPORT_DIR wins over the default."""
        monkeypatch.setenv('QUICKSCAN_REPORT_DIR', str(tmp_path / 'out'))
        assert QuickScanPaths.get_report_dir() == tmp_path / 'out'

    def test_default_report_dir(self, monkeypatch):
        monkeypatch.delenv('QUICKSCAN_REPORT_DIR', raising=False)
        assert QuickScanPaths.get_report_dir().parts[-3:] == ('share', 'quickscan', 'reports')

    def test_under(self, tmp_path):
        """System paths can be re-anchored below a fake root."""
        assert SystemPaths.under(tmp_path, SystemPaths.BLOCK) == tmp_path / 'sys' / 'block'


class TestDetectionSettings:
    """Tests for config.detection_settings."""

    def test_default(self, monkeypatch):
        monkeypatch.delenv('QUICKSCAN_STRICT_STORAGE_FALLBACK', raising=False)
        assert config.detection_settings().strict_storage_fallback is False

    @pytest.mark.parametrize("value", ['1', 'true', 'YES', 'on'])
    def test_strict_storage_flag(self, monkeypatch, value):
        monkeypatch.setenv('QUICKSCAN_STRICT_STORAGE_FALLBACK', value)
        assert config.detection_settings().strict_storage_fallback is True

    def test_int_fallback(self, monkeypatch):
        """Malformed numbers fall back to the default."""
        monkeypatch.setenv('QUICKSCAN_PROBE_TIMEOUT', 'ten')
        assert config._int('QUICKSCAN_PROBE_TIMEOUT', 10) == 10


class TestSystemHelpers:
    """Tests for sysfs readers and run_command."""

    def test_read_text(self, tmp_path):
        path = tmp_path / 'model'
        path.write_text("Samsung SSD 980  \n")
        assert read_text(path) == 'Samsung SSD 980'
        assert read_text(tmp_path / 'missing') is None

    def test_read_int(self, tmp_path):
        path = tmp_path / 'cycle_count'
        path.write_text("412\n")
        assert read_int(path) == 412
        path.write_text("unknown\n")
        assert read_int(path) is None

    def test_run_command_missing_binary(self):
        """A missing command is reported, not raised."""
        result = run_command(['quickscan-no-such-binary'])
        assert result['success'] is False
        assert result['returncode'] == -1


class TestConsole:
    """Tests for console helpers."""

    def test_status_markup(self):
        assert status_markup('passed') == '[passed]✓ passed[/passed]'
        assert status_markup('failed') == '[failed]✗ failed[/failed]'

    def test_singleton(self):
        first = get_console()
        assert get_console() is first
        reset_console()
        assert get_console() is not first
