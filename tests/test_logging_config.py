"""
Tests for logging setup and redaction.
"""
import io
import logging
from logging.handlers import RotatingFileHandler

import pytest

from coach.core.logging_config import sanitize_log_data, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_console_only_logging_goes_to_given_stream():
    stream = io.StringIO()
    setup_logging("debug", log_dir=None, stream=stream)

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)

    logging.getLogger("coach.test").info("hello")
    assert "coach.test - INFO - hello" in stream.getvalue()
    assert logging.getLogger("httpx").level == logging.WARNING


def test_file_logging_creates_directory(tmp_path):
    log_dir = tmp_path / "nested" / "logs"
    setup_logging("INFO", log_dir=str(log_dir), log_file="client.log", stream=io.StringIO())

    logging.getLogger("coach.test").warning("saved")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "saved" in (log_dir / "client.log").read_text()


def test_unknown_level_falls_back_to_info():
    setup_logging("chatty", log_dir=None, stream=io.StringIO())
    assert logging.getLogger().level == logging.INFO


def test_sanitize_redacts_secret_keys_only():
    data = {"Authorization": "Bearer abc", "gemini_api_key": "g", "job_title": "Engineer"}
    sanitized = sanitize_log_data(data)
    assert sanitized == {"Authorization": "***REDACTED***", "gemini_api_key": "***REDACTED***", "job_title": "Engineer"}
    assert data["Authorization"] == "Bearer abc"
