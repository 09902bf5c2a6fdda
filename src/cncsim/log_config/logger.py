"""Logging setup, contextual logger, and rotating file handler."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any


# ---------------------------------------------------------------------------
# Format
# ---------------------------------------------------------------------------
_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers capped at WARNING unless DEBUG is requested.
_NOISY_LOGGERS = ("nicegui", "uvicorn", "uvicorn.access", "watchfiles")


# ---------------------------------------------------------------------------
# setup_logging
# ---------------------------------------------------------------------------
def setup_logging(
    log_level: str = "INFO",
    log_dir: str | None = "logs",
    log_file: str = "cncsim.log",
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Install console and rotating-file handlers on the root logger.

    Re-running replaces the handlers from the previous call.

    Args:
        log_level: DEBUG / INFO / WARNING / ERROR / CRITICAL.  The simulated
            device's ``WARN`` spelling is accepted too.
        log_dir: Directory for the log file, or ``None`` for console only.
        log_file: File name inside *log_dir*.
        max_bytes: Rotation threshold per file.
        backup_count: Rotated files kept next to the live one.
    """
    name = log_level.upper()
    if name == "WARN":
        name = "WARNING"
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir is not None:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, log_file),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(noisy_level)


# ---------------------------------------------------------------------------
# get_logger
# ---------------------------------------------------------------------------
def get_logger(name: str) -> logging.Logger:
    """Return a stdlib Logger for *name* (typically ``__name__``)."""
    return logging.getLogger(name)


# ---------------------------------------------------------------------------
# ContextualLogger
# ---------------------------------------------------------------------------
class ContextualLogger:
    """Logger facade that tags every message with ``[key=value]`` pairs.

    Usage::

        log = ContextualLogger(get_logger(__name__), watchdog="icmp")
        log.warning("Probe to %s failed", ip)  # => "[watchdog=icmp] Probe to ... failed"
    """

    def __init__(self, logger: logging.Logger, **context: Any) -> None:
        self._logger = logger
        self._context = dict(context)
        self._prefix = " ".join(f"[{k}={v}]" for k, v in context.items())

    def bind(self, **extra: Any) -> ContextualLogger:
        """Return a new logger with *extra* merged into the context."""
        return ContextualLogger(self._logger, **{**self._context, **extra})

    def _fmt(self, msg: str) -> str:
        return f"{self._prefix} {msg}" if self._prefix else msg

    def log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.log(level, self._fmt(msg), *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._logger.exception(self._fmt(msg), *args, **kwargs)
