# triage_engine/logging_utils.py

"""
Logging helpers for conn-triage.
Scoped loggers write to stdout and to a rotating file under ~/.conn-triage/logs.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

from .config_loader import LOG_DIR, ensure_runtime_dirs

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_LOGGER = "conn_triage"
DEFAULT_LOGFILE = "conn_triage.log"


def parse_level(level_name: str) -> int:
    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level '{level_name}'")
    return level


def configure_logger(
    name: str = DEFAULT_LOGGER,
    logfile: str = DEFAULT_LOGFILE,
    level: int = logging.INFO,
    console: bool = True,
    fmt: str = DEFAULT_FORMAT,
    max_bytes: int | None = 5 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Return a logger writing to ~/.conn-triage/logs/<logfile>.
    Repeated calls return the already configured logger.
    """
    ensure_runtime_dirs()
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(fmt)

    log_path = Path(LOG_DIR) / logfile
    log_path.parent.mkdir(parents=True, exist_ok=True)
    if max_bytes:
        file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count)
    else:
        file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    logger.propagate = False
    return logger


def logger_from_settings(settings: Dict[str, Any], level: int = logging.INFO, console: bool = True) -> logging.Logger:
    logger = configure_logger(
        level=level,
        console=console,
        max_bytes=settings.get("log_max_bytes"),
        backup_count=settings.get("log_backup_count", 5),
    )
    # configure_logger hands back an existing logger untouched
    update_log_level(logger, level)
    return logger


def update_log_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


__all__ = ["configure_logger", "logger_from_settings", "parse_level", "update_log_level"]
