"""
Logging setup for agentgate.

The CLI and hook mode print JSON on stdout, so log records go to a rotating
file under logs/. With --log-stderr the same records are also echoed to
stderr through colorlog, which is handy when wiring the hook into a host.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import colorlog

from ..config import LOGS_DIR
from .constants import (
    COLORLOG_COLORS,
    LOG_BACKUP_COUNT,
    LOG_FILE_CLI,
    LOG_FORMAT_COLORED,
    LOG_FORMAT_FILE,
    LOG_MAX_BYTES,
)


def _get_log_level(log_level: str) -> int:
    """Convert a level name (DEBUG, INFO, ...) to its logging constant."""
    return getattr(logging, log_level.upper(), logging.INFO)


def _file_handler(log_file: Path, level: int) -> RotatingFileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_file),
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_FILE))
    return handler


def _stderr_handler(level: int) -> logging.Handler:
    # Never stdout: hook responses are written there
    handler = colorlog.StreamHandler(sys.stderr)
    handler.setFormatter(
        colorlog.ColoredFormatter(LOG_FORMAT_COLORED, log_colors=COLORLOG_COLORS)
    )
    handler.setLevel(level)
    return handler


def setup_file_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    stderr: bool = False,
) -> None:
    """
    Replace the root logger's handlers with a rotating file handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR). Unknown
            names fall back to INFO.
        log_file: Path to the log file. If None, uses LOGS_DIR / agentgate_cli.log.
        stderr: Also echo records to stderr with colors.
    """
    level = _get_log_level(log_level)
    if log_file is None:
        log_file = LOGS_DIR / LOG_FILE_CLI

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(_file_handler(log_file, level))
    if stderr:
        root_logger.addHandler(_stderr_handler(level))


def setup_cli_logging(log_level: str = "INFO", stderr: bool = False) -> None:
    """Configure logging for the agentgate command."""
    setup_file_logging(log_level=log_level, log_file=LOGS_DIR / LOG_FILE_CLI, stderr=stderr)
