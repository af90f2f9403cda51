"""
Logging configuration shared by the API server and the practice client.

The server logs to stdout plus a rotating file; the client keeps stdout for
the interview itself and logs to stderr and its own file.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "httpx", "httpcore", "openai", "google_genai", "websockets")

SENSITIVE_KEYS = (
    "password", "token", "secret", "key", "authorization",
    "openai_api_key", "gemini_api_key", "database_url",
)


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[str] = "logs",
    log_file: str = "coach.log",
    stream: Optional[TextIO] = None,
):
    """
    Configure the root logger.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        log_dir: Directory for the rotating log file, or None for console only
        log_file: File name inside log_dir
        stream: Console stream, stdout when omitted
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_dir is not None:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def sanitize_log_data(data: dict) -> dict:
    """Return a copy of `data` with secret-looking values redacted."""
    sanitized = data.copy()
    for key in sanitized:
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            sanitized[key] = "***REDACTED***"
    return sanitized
