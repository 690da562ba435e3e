"""Logging helpers for backlot."""

from __future__ import annotations

import logging
from pathlib import Path

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LEVELS = {
    "debug": logging.DEBUG,
    "verbose": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_LOGGING_INITIALIZED = False


def configure_logging(verbosity: str = "info", log_file: Path | None = None) -> None:
    """Configure global logging with console and optional file handlers.

    Calling this again adjusts the console level and adds a file handler if
    one is requested and none exists yet.

    Args:
        verbosity: Console verbosity (debug, verbose, info, warn, error).
        log_file: Optional path for a debug-level log file.
    """
    global _LOGGING_INITIALIZED

    console_level = _LEVELS.get(verbosity.lower(), logging.INFO)
    root = logging.getLogger()
    if not _LOGGING_INITIALIZED:
        root.setLevel(logging.DEBUG)
        root.handlers.clear()
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        console_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(console_handler)
        _LOGGING_INITIALIZED = True
    else:
        for handler in root.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(
                handler, logging.FileHandler
            ):
                handler.setLevel(console_level)

    if log_file is not None and not any(
        isinstance(handler, logging.FileHandler) for handler in root.handlers
    ):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(file_handler)

