"""
Logging setup for the orchestrator service.

Module loggers (logging.getLogger(__name__)) all live under the "app"
namespace; setup_logging("app") attaches a rotating file handler and,
when debugging or on Vercel, a stdout handler to that parent logger.
"""
from __future__ import annotations

import os
import logging
import logging.handlers
import sys
from typing import Optional

from app.core.paths import get_logs_dir

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


def _level_from_env() -> int:
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _console_enabled() -> bool:
    return os.getenv("DEBUG", "").lower() in ("1", "true", "yes") or bool(os.getenv("VERCEL"))


def _add_file_handler(logger: logging.Logger, name: str, formatter: logging.Formatter) -> None:
    # Read-only filesystems (Vercel) log to stdout only
    if os.getenv("VERCEL"):
        return
    try:
        handler = logging.handlers.RotatingFileHandler(
            get_logs_dir() / f"{name}.log",
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8"
        )
    except OSError as e:
        print(f"File logging disabled for '{name}': {e}", file=sys.stderr)
        return
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def setup_logging(
    name: str = "app",
    level: Optional[int] = None,
    enable_console: Optional[bool] = None
) -> logging.Logger:
    """
    Configure a logger once; later calls return it unchanged.

    Args:
        name: Logger name, also used for the log file name
        level: Log level override (None = LOG_LEVEL env var, default INFO)
        enable_console: Force stdout output (None = on when DEBUG or VERCEL is set)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level if level is not None else _level_from_env())
    formatter = logging.Formatter(LOG_FORMAT)

    _add_file_handler(logger, name, formatter)

    if enable_console is None:
        enable_console = _console_enabled()
    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
