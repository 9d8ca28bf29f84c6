"""
Logging for Fund Allocator.

Every module logs through get_logger(__name__). Console lines are colored
by level; setting LOG_FILE adds a rotating plain-text copy. The level comes
from LOG_LEVEL until the CLI applies the configured one with set_log_level.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


class Colors:
    """Escape sequences used for console levels."""
    RESET = "\033[0m"
    GRAY = "\033[90m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD = "\033[1m"


LEVEL_COLORS = {
    logging.DEBUG: Colors.GRAY,
    logging.INFO: Colors.GREEN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.RED + Colors.BOLD,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Wraps each console line in its level color."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, Colors.RESET)
        message = super().format(record)
        return f"{color}{message}{Colors.RESET}"


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logger(
    name: str,
    level: int | str | None = None,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    Attach console (and optional file) handlers to a package logger.

    A logger that already has handlers is returned untouched, so repeated
    calls from module imports are harmless.

    Args:
        name: Dotted module name, e.g. "fund_allocator.fund.manager"
        level: Level name or number; LOG_LEVEL or INFO when omitted
        log_file: Rotating log path; LOG_FILE when omitted, none if unset
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    level = _resolve_level(level)
    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file is None:
        log_file = os.getenv("LOG_FILE") or None

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the named logger, configuring it on first use."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


def set_log_level(level: int | str, prefix: str = "fund_allocator") -> None:
    """
    Change the level of every configured logger under prefix.

    Args:
        level: New log level
        prefix: Logger name prefix
    """
    level = _resolve_level(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger) or not name.startswith(prefix):
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
