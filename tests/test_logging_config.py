# tests/test_logging_config.py
"""
Tests for llmsession.logging_config: DisplayFilter, log_display(), file
handler modes, TOML loading and console gating.
"""

import io
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from llmsession.exceptions import ConfigError
from llmsession.logging_config import (
    DEFAULT_LOGGING_CONFIG,
    DisplayFilter,
    LoggingManager,
    configure_logging,
    get_log_file_path,
    log_display,
    set_component_level,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _reset_manager() -> None:
    LoggingManager._instance = None
    LoggingManager._configured = False
    LoggingManager._log_file_path = None
    LoggingManager._console_handler = None
    LoggingManager._file_handler = None
    LoggingManager._display_filter = None


@pytest.fixture
def reset_logging_manager():
    """Reset the logging manager singleton and root handlers around a test."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    _reset_manager()

    yield

    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    for name in DEFAULT_LOGGING_CONFIG["components"]:
        logging.getLogger(name).setLevel(logging.NOTSET)
    _reset_manager()


def _make_record(level: int = logging.INFO, display: bool | None = None) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=level, pathname="", lineno=0, msg="test message", args=(), exc_info=None,
    )
    if display is not None:
        record.display = display
    return record


# ===========================================================================
# DisplayFilter
# ===========================================================================


class TestDisplayFilter:
    """Unit tests for the DisplayFilter class."""

    def test_display_true_passes_in_quiet_mode(self):
        f = DisplayFilter(console_globally_enabled=False)
        assert f.filter(_make_record(display=True)) is True

    def test_no_display_blocked_in_quiet_mode(self):
        f = DisplayFilter(console_globally_enabled=False)
        assert f.filter(_make_record()) is False

    def test_display_below_min_level_blocked(self):
        f = DisplayFilter(console_globally_enabled=False, display_min_level=logging.WARNING)
        assert f.filter(_make_record(level=logging.INFO, display=True)) is False

    def test_everything_passes_in_verbose_mode(self):
        f = DisplayFilter(console_globally_enabled=True)
        assert f.filter(_make_record(level=logging.DEBUG)) is True


# ===========================================================================
# log_display()
# ===========================================================================


class TestLogDisplay:
    """Tests for the log_display() convenience function."""

    def test_sets_display_attribute(self, caplog):
        logger = logging.getLogger("test.display")
        with caplog.at_level(logging.DEBUG):
            log_display(logger, logging.WARNING, "Recovered %s", "session-1")
        record = caplog.records[-1]
        assert record.getMessage() == "Recovered session-1"
        assert record.display is True

    def test_merges_caller_extra(self, caplog):
        logger = logging.getLogger("test.display")
        with caplog.at_level(logging.DEBUG):
            log_display(logger, logging.INFO, "msg", extra={"session_id": "s-1"})
        record = caplog.records[-1]
        assert record.display is True
        assert record.session_id == "s-1"


# ===========================================================================
# configure_logging()
# ===========================================================================


class TestConfigureLogging:
    """End-to-end configuration tests."""

    def test_per_run_file_created(self, tmp_path: Path, reset_logging_manager):
        path = configure_logging(app_name="unit", config={"file_directory": str(tmp_path)})
        assert path is not None
        assert path.parent == tmp_path
        assert path.name.startswith("unit_")
        assert get_log_file_path() == path

    def test_single_mode_uses_rotating_handler(self, tmp_path: Path, reset_logging_manager):
        path = configure_logging(
            app_name="unit",
            config={"file_directory": str(tmp_path), "file_mode": "single", "rotation_backup_count": 2},
        )
        assert path == tmp_path / "unit.log"
        assert isinstance(LoggingManager._file_handler, RotatingFileHandler)
        assert LoggingManager._file_handler.backupCount == 2

    def test_file_disabled(self, reset_logging_manager):
        assert configure_logging(config={"file_enabled": False}) is None

    def test_configured_only_once(self, tmp_path: Path, reset_logging_manager):
        first = configure_logging(config={"file_directory": str(tmp_path / "a")})
        second = configure_logging(config={"file_directory": str(tmp_path / "b")})
        assert first == second

    def test_reads_logging_table_from_toml(self, tmp_path: Path, reset_logging_manager):
        config_file = tmp_path / "llmsession.toml"
        config_file.write_text(
            "[logging]\n"
            "file_mode = \"single\"\n"
            f"file_directory = \"{tmp_path.as_posix()}\"\n"
            "file_single_name = \"host.log\"\n"
        )
        assert configure_logging(config_file_path=config_file) == tmp_path / "host.log"

    def test_non_table_logging_section_rejected(self, tmp_path: Path, reset_logging_manager):
        config_file = tmp_path / "llmsession.toml"
        config_file.write_text("logging = 3\n")
        with pytest.raises(ConfigError):
            configure_logging(config_file_path=config_file)

    def test_quiet_console_only_shows_display_records(self, reset_logging_manager):
        configure_logging(config={"file_enabled": False})
        stream = io.StringIO()
        LoggingManager._console_handler.setStream(stream)

        logger = logging.getLogger("llmsession.test")
        logger.warning("hidden warning")
        log_display(logger, logging.WARNING, "visible warning")

        output = stream.getvalue()
        assert "visible warning" in output
        assert "hidden warning" not in output

    def test_component_levels_applied(self, reset_logging_manager):
        configure_logging(config={"file_enabled": False, "components": {"llmsession.storage": "ERROR"}})
        assert logging.getLogger("llmsession.storage").level == logging.ERROR
        set_component_level("llmsession.storage", "DEBUG")
        assert logging.getLogger("llmsession.storage").level == logging.DEBUG
        logging.getLogger("llmsession.storage").setLevel(logging.NOTSET)
