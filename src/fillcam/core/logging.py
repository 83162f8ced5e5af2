"""Logging configuration and custom handlers for FillCam.

This module provides the application-wide logging setup and a handler that
emits Qt signals so windows can surface warnings to the user.
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QObject, Signal

LOG_FORMAT = "%(asctime)s [%(threadName)-15s] %(levelname)-5s %(filename)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "fillcam.log"

# Third-party loggers held at INFO or above
QUIET_LOGGERS = ("PIL",)


def default_log_dir() -> Path:
    """Platform log directory for FillCam.

    macOS: ~/Library/Logs/FillCam
    Windows: %LOCALAPPDATA%/FillCam/Logs
    Linux: $XDG_STATE_HOME/fillcam (~/.local/state/fillcam)
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Logs" / "FillCam"
    elif sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "FillCam" / "Logs"
    else:
        base = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
        return base / "fillcam"


class LogSignalEmitter(QObject):
    """Qt signal emitter for log messages.

    Kept separate from LogConsoleHandler to avoid the clash between
    QObject.emit and logging.Handler.emit.

    Signals:
        log_message: (level name, formatted message, original record)
    """

    log_message = Signal(str, str, object)


class MillisecondFormatter(logging.Formatter):
    """Formatter that always includes milliseconds in timestamps."""

    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        if datefmt:
            s = time.strftime(datefmt, ct)
        else:
            s = time.strftime(DATE_FORMAT, ct)
        return f"{s}.{int(record.msecs):03d}"


class LogConsoleHandler(logging.Handler):
    """Logging handler that emits Qt signals for UI integration.

    Signals are delivered through Qt's queued connections, so records
    logged on worker threads reach widgets on the UI thread.
    """

    def __init__(self, level: int = logging.NOTSET):
        """Initialize the handler.

        Args:
            level: Minimum log level to handle (default: NOTSET, handles all levels)
        """
        super().__init__(level=level)
        self._signal_emitter = LogSignalEmitter()

    @property
    def log_message(self):
        """Signal that emits (level: str, message: str, record: LogRecord)."""
        return self._signal_emitter.log_message

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self._signal_emitter.log_message.emit(record.levelname, message, record)
        except Exception:
            self.handleError(record)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    console_handler: Optional[LogConsoleHandler] = None,
) -> None:
    """Configure application-wide logging.

    Log format: YYYY-MM-DD HH:MM:SS.mmm [ThreadName     ] LEVEL  filename.py:line - message

    The file handler records everything at DEBUG; stdout and the optional UI
    handler use the requested level.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file (default: fillcam.log in default_log_dir())
        console_handler: Optional LogConsoleHandler for UI integration
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = MillisecondFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = []

    if log_file is None:
        log_file = default_log_dir() / LOG_FILE_NAME

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    except (OSError, PermissionError) as e:
        # If we can't create the log file, print a warning but continue
        print(f"Warning: Could not create log file {log_file}: {e}", file=sys.stderr)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(numeric_level)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if console_handler is not None:
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(logging.DEBUG)

    for handler in handlers:
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized at level {log_level}")
    if log_file:
        logger.info(f"Log file: {log_file.absolute()}")

