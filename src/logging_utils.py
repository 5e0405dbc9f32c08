"""Logging setup shared by the CLI commands and the ingest pipeline."""

from __future__ import annotations

import logging
import os
from pathlib import Path

LOG_FILE_NAME = "screenshot-triage.log"
ENV_LOG_LEVEL = "SCREENSHOT_TRIAGE_LOG_LEVEL"
ENV_LOG_FILE = "SCREENSHOT_TRIAGE_LOG_FILE"
ENV_LOG_FORMAT = "SCREENSHOT_TRIAGE_LOG_FORMAT"

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
# Ingestion runs on worker threads, so the file log records the thread name.
FILE_FORMAT = (
    "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s:%(lineno)d | %(message)s"
)
QUIET_LOGGERS = ("PIL", "pytesseract")

_installed_handlers: list[logging.Handler] = []


def _resolve_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.getenv(ENV_LOG_LEVEL, "INFO")).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def resolve_log_file(
    log_file: str | os.PathLike[str] | None = None,
    data_dir: str | os.PathLike[str] | None = None,
) -> Path | None:
    """Pick the log file: explicit path, then the env var, then the data dir.

    An empty string, from either the argument or the environment, disables
    file logging.
    """
    if log_file is None:
        log_file = os.getenv(ENV_LOG_FILE)
    if log_file is not None:
        return Path(log_file).expanduser() if str(log_file).strip() else None
    if data_dir is not None:
        return Path(data_dir).expanduser() / LOG_FILE_NAME
    return None


def configure_logging(
    level: int | str | None = None,
    *,
    data_dir: str | os.PathLike[str] | None = None,
    log_file: str | os.PathLike[str] | None = None,
    console: bool = True,
) -> Path | None:
    """Install console and file handlers on the root logger.

    The console shows ``level`` and above. The file handler never records less
    than INFO, so every ingest is on record even when the console only shows
    warnings. Calling this again replaces the handlers installed earlier and
    leaves other handlers alone. Returns the log file path, if any.
    """
    console_level = _resolve_level(level)
    log_path = resolve_log_file(log_file, data_dir)

    handlers: list[logging.Handler] = []
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(console_level)
        stream_handler.setFormatter(
            logging.Formatter(os.getenv(ENV_LOG_FORMAT, CONSOLE_FORMAT))
        )
        handlers.append(stream_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(min(console_level, logging.INFO))
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    if not handlers:
        raise ValueError("configure_logging requires at least one handler")

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers[:] = handlers
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(min(handler.level for handler in handlers))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path


__all__ = ["configure_logging", "resolve_log_file"]
