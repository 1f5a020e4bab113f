"""
Centralized path configuration for the service.

This module provides a single source of truth for the few paths the service
touches: the project root, the config directory and the logs directory.
"""
from __future__ import annotations

import os
from pathlib import Path


def _is_vercel() -> bool:
    """Check if running on Vercel serverless environment."""
    return os.getenv("VERCEL") == "1" or "/var/task" in str(Path(__file__).resolve())


def get_backend_root() -> Path:
    """
    Get the project root directory.

    Returns:
        Path: Absolute path to the directory holding the app/ package
    """
    # This file is in app/core/, so parent.parent.parent is the project root
    current_file = Path(__file__).resolve()
    return current_file.parent.parent.parent


def get_config_dir() -> Path:
    """Directory holding optional YAML configuration."""
    return get_backend_root() / "config"


def get_logs_dir() -> Path:
    """
    Get the logs directory.

    On Vercel, uses /tmp/logs for writable storage.
    Otherwise, uses <root>/logs/

    Returns:
        Path: Absolute path to logs directory
    """
    if _is_vercel():
        logs_dir = Path("/tmp/logs")
    else:
        logs_dir = get_backend_root() / "logs"

    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        # If we can't create it, return the path anyway (might be read-only)
        pass
    return logs_dir
