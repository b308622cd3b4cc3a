"""
Unit Tests for Logging Configuration

Run with:
    pytest tests/unit/test_logging.py -v
"""

import logging

import pytest

from core.logging import get_logger, log_fetch_progress, setup_logging


@pytest.fixture
def file_logging(tmp_path):
    setup_logging("INFO", log_dir=str(tmp_path / "logs"))
    yield tmp_path / "logs"
    setup_logging("INFO")


class TestLogging:
    """Tests for logger setup and helpers"""

    def test_module_loggers_share_namespace(self):
        assert get_logger("services.validator").name == "klinecollector.services.validator"

    def test_log_dir_writes_combined_and_error_files(self, file_logging):
        get_logger("tests").info("fetched 3 pages")
        get_logger("tests").error("okx stopped early")
        for handler in logging.getLogger("klinecollector").handlers:
            handler.flush()

        combined = (file_logging / "combined.log").read_text()
        errors = (file_logging / "error.log").read_text()
        assert "fetched 3 pages" in combined
        assert "okx stopped early" in combined
        assert "okx stopped early" in errors
        assert "fetched 3 pages" not in errors

    def test_setup_without_log_dir_removes_file_handlers(self, tmp_path):
        setup_logging("INFO", log_dir=str(tmp_path / "logs"))
        setup_logging("INFO")

        handlers = logging.getLogger("klinecollector").handlers
        assert not any(isinstance(h, logging.FileHandler) for h in handlers)

    def test_fetch_progress_format(self, caplog):
        with caplog.at_level(logging.INFO, logger="klinecollector"):
            log_fetch_progress("binance", 42.5, "2020-03-12", 1000)

        assert "Fetch progress: binance 42.50% | Current date: 2020-03-12 | Records: 1000" in caplog.text
