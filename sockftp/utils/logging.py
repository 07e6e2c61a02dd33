"""Logging configuration for sockftp.

Provides centralized logging with credential redaction so that FTP
passwords are never written to the console or log files, even at
DEBUG level where the control conversation is traced.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional


APP_LOGGER = "sockftp"

# Credential patterns to redact from logs
PII_PATTERNS = [
    # PASS command on the control connection
    (re.compile(r'(\bPASS )(?!\*\*\*\*)\S+'), r'\1[REDACTED]'),
    # Password in various formats
    (re.compile(r'(password["\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(passwd["\s:=]+)[^\s,}\]]+', re.IGNORECASE), r'\1[REDACTED]'),
    # FTP URLs with credentials
    (re.compile(r'ftps?://[^:/\s]+:[^@\s]+@'), 'ftp://[REDACTED]@'),
]


class PIIRedactingFormatter(logging.Formatter):
    """Formatter that redacts credentials from log messages."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in PII_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console: bool = True
) -> logging.Logger:
    """
    Configure application logging with credential redaction.

    Args:
        level: Logging level (default INFO)
        log_file: Optional file path for log output
        console: Whether to output to stderr (default True)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(APP_LOGGER)
    logger.setLevel(level)

    logger.handlers.clear()

    formatter = PIIRedactingFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # stdout carries command output
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = APP_LOGGER) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (default is app logger)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
