"""
Logging configuration for WhatsApp Snippets.

Sets up logging with dictConfig so the CLI, the API and the live adapter all
share one format and an environment-controlled level.

Environment Variables:
    LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO if not set or invalid.

Usage:
    from whatsapp_snippets.logger_config import setup_logging
    setup_logging()  # Uses LOG_LEVEL env var, defaults to INFO

    # Or override explicitly, with a rotating log file:
    setup_logging(level=logging.DEBUG, log_file="import.log")
"""

import logging
import logging.config
import os
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers; httpx logs every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def get_log_level() -> int:
    """
    Get log level from LOG_LEVEL environment variable.

    Returns:
        Logging level constant (e.g., logging.INFO). INFO if unset or invalid.
    """
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the application using dictConfig.

    Safe to call more than once; each call replaces the previous handlers.

    Args:
        level: Logging level. If None, reads from LOG_LEVEL env var (default: INFO).
        format_string: Optional custom format string.
        log_file: Optional file path to write logs to (with rotation).
    """
    if level is None:
        level = get_log_level()

    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": format_string or DEFAULT_FORMAT,
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "standard",
                # stderr keeps the CLI's progress output on stdout readable
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            name: {"level": max(level, logging.WARNING)} for name in QUIET_LOGGERS
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": 10_485_760,  # 10 MB
            "backupCount": 5,
            "encoding": "utf-8",
        }
        config["root"]["handlers"].append("file")

    logging.config.dictConfig(config)
