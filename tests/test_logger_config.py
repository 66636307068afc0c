"""Tests for logger_config module."""

import logging
import sys
from pathlib import Path

import pytest

from whatsapp_snippets.logger_config import QUIET_LOGGERS, get_log_level, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    """Put the default configuration back after each test."""
    yield
    setup_logging()


def _flush_root() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestGetLogLevel:
    """Tests for get_log_level function."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("DEBUG", logging.DEBUG),
            ("warning", logging.WARNING),
            (" Error ", logging.ERROR),
            ("INVALID", logging.INFO),
            ("", logging.INFO),
        ],
    )
    def test_from_environment(self, value, expected, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", value)
        assert get_log_level() == expected

    def test_unset_is_info(self):
        assert get_log_level() == logging.INFO


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_env_level_used_when_not_given(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        setup_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_explicit_level_overrides_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        setup_logging(level=logging.ERROR)
        assert logging.getLogger().level == logging.ERROR

    def test_reconfiguring_replaces_handlers(self, tmp_path: Path):
        setup_logging(log_file=str(tmp_path / "first.log"))
        setup_logging()
        handler_types = [type(h).__name__ for h in logging.getLogger().handlers]
        assert handler_types == ["StreamHandler"]

    def test_module_loggers_stay_enabled(self):
        """Loggers created at import time, like the pipeline's, keep working."""
        module_logger = logging.getLogger("whatsapp_snippets.etl.pipeline")
        setup_logging(level=logging.INFO)
        assert not module_logger.disabled
        assert module_logger.isEnabledFor(logging.INFO)

    def test_console_writes_to_stderr(self):
        """Console output goes to stderr so CLI progress on stdout stays clean."""
        setup_logging()
        root = logging.getLogger()
        streams = [getattr(h, "stream", None) for h in root.handlers if type(h) is logging.StreamHandler]
        assert streams == [sys.stderr]

    def test_http_client_loggers_quieted(self):
        """httpx request logging stays below the console unless level is WARNING or higher."""
        setup_logging(level=logging.DEBUG)
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

        setup_logging(level=logging.ERROR)
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.ERROR

    def test_log_file_receives_records(self, tmp_path: Path):
        log_file = tmp_path / "import.log"
        setup_logging(level=logging.INFO, format_string="%(levelname)s %(message)s", log_file=str(log_file))

        logging.getLogger("whatsapp_snippets.test").info("Inserted 7 snippets")
        logging.getLogger("whatsapp_snippets.test").debug("below the level")
        _flush_root()

        text = log_file.read_text(encoding="utf-8")
        assert "INFO Inserted 7 snippets" in text
        assert "below the level" not in text

    def test_quiet_logger_info_not_written(self, tmp_path: Path):
        log_file = tmp_path / "import.log"
        setup_logging(level=logging.INFO, format_string="%(name)s %(message)s", log_file=str(log_file))

        logging.getLogger("httpx").info("HTTP Request: GET https://example.test")
        logging.getLogger("httpx").warning("retrying")
        _flush_root()

        text = log_file.read_text(encoding="utf-8")
        assert "HTTP Request" not in text
        assert "httpx retrying" in text
