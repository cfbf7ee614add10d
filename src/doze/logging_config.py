"""
Logging setup for the DOZE command line.

The engine modules only ever call ``logging.getLogger(__name__)``. Handlers
are installed here, once, from the ``[logging]`` table of the config file:

    [logging]
    enabled = true          # rotating file log under ~/.doze/logs
    level = "DEBUG"         # file handler level
    max_size_mb = 5
    backup_count = 3

    [logging.loggers]
    "doze.analysis" = "INFO"
"""

import logging
import logging.config
import os
import sys

from pathlib import Path
from typing import Any

from doze.constants import (
    DEFAULT_LOG_BACKUP_COUNT,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_FILE,
    DEFAULT_LOG_MAX_BYTES,
)

_logging_configured = False

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FALLBACK_FORMAT = "%(levelname)s: %(message)s"


def get_log_dir() -> Path:
    """
    Directory holding the rotating log files (created on first use).

    Returns:
        Path to the log directory
    """
    log_dir = DEFAULT_LOG_DIR
    os.makedirs(log_dir, mode=0o700, exist_ok=True)
    return log_dir


def get_log_path() -> Path:
    """Path to doze.log."""
    return get_log_dir() / DEFAULT_LOG_FILE


def _get_user_logging_config() -> dict[str, Any]:
    """The [logging] table of the config file, or {} if absent or malformed."""
    from doze.config import load_config

    table = load_config().get("logging", {})
    return table if isinstance(table, dict) else {}


def _file_handler(user_config: dict[str, Any]) -> dict[str, Any]:
    if "max_size_mb" in user_config:
        max_bytes = int(user_config["max_size_mb"] * 1024 * 1024)
    else:
        max_bytes = DEFAULT_LOG_MAX_BYTES

    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": str(user_config.get("level", "DEBUG")).upper(),
        "formatter": "file",
        "filename": str(get_log_path()),
        "maxBytes": max_bytes,
        "backupCount": int(user_config.get("backup_count", DEFAULT_LOG_BACKUP_COUNT)),
        "encoding": "utf-8",
    }


def _logger_levels(user_config: dict[str, Any]) -> dict[str, dict[str, str]]:
    overrides = user_config.get("loggers", {})
    if not isinstance(overrides, dict):
        return {}
    return {name: {"level": str(level).upper()} for name, level in overrides.items()}


def _build_logging_config(
    verbose: bool = False,
    console_format: str | None = None,
) -> dict[str, Any]:
    """
    Assemble the dictConfig dictionary.

    Args:
        verbose: Console at DEBUG instead of INFO
        console_format: Console format string (defaults to the file format)

    Returns:
        Dictionary for logging.config.dictConfig()
    """
    user_config = _get_user_logging_config()

    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG" if verbose else "INFO",
            "formatter": "console",
            "stream": "ext://sys.stderr",
        },
    }
    if user_config.get("enabled", True):
        handlers["file"] = _file_handler(user_config)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": console_format or DEFAULT_FORMAT},
            "file": {"format": DEFAULT_FORMAT},
        },
        "handlers": handlers,
        "loggers": _logger_levels(user_config),
        "root": {"level": "DEBUG", "handlers": list(handlers)},
    }


def setup_logging(
    *,
    verbose: bool = False,
    console_format: str | None = None,
) -> None:
    """
    Install the DOZE log handlers.

    Only the first call has an effect. The engine never calls this;
    applications embedding it configure logging their own way.

    Args:
        verbose: Console at DEBUG instead of INFO
        console_format: Console format string. If None, uses the full format.
    """
    global _logging_configured

    if _logging_configured:
        return

    try:
        logging.config.dictConfig(
            _build_logging_config(verbose=verbose, console_format=console_format)
        )
    except (OSError, ValueError, TypeError) as e:
        sys.stderr.write(f"WARNING: Failed to configure logging: {e}\n")
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format=console_format or FALLBACK_FORMAT,
        )

    _logging_configured = True
