"""Logging configuration for the bank feed reconciliation application."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Logging level (e.g., logging.DEBUG, logging.INFO)
        log_file: Optional path to log file
        log_format: Optional custom log format string

    Returns:
        Configured logger instance
    """
    if log_format is None:
        log_format = DEFAULT_LOG_FORMAT

    logger = logging.getLogger("bankfeed_recon")
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
            )
        )
        logger.addHandler(file_handler)

    return logger


def level_from_name(name: str) -> int:
    """Translate a configured level name such as "DEBUG" into a logging level."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO
