"""Logging helpers for maildeliver.

Standard output carries the message echo and standard error is reserved for
fatal diagnostics, so nothing is logged to a stream unless asked for. Levels
are validated by :mod:`maildeliver.config`.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import ConfigError, LoggingConfig

FILE_FORMAT = "%(asctime)s %(levelname)s %(process)d %(name)s: %(message)s"


class ConsoleFormatter(logging.Formatter):
    """``maildeliver[pid] LEVEL: message``, level coloured on a terminal."""

    COLORS: dict[int, str] = {
        logging.DEBUG: "\x1b[2m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[1;31m",
    }
    RESET = "\x1b[0m"

    def __init__(self, use_color: bool) -> None:
        super().__init__("maildeliver[%(process)d] %(levelname)s: %(message)s")
        self.use_color = use_color

    def formatMessage(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno) if self.use_color else None
        if color is None:
            return super().formatMessage(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain


def configure_logging(logging_config: LoggingConfig) -> None:
    """Install the handlers selected by ``logging_config``."""

    handlers: list[logging.Handler] = []
    if logging_config.file is not None:
        handlers.append(_file_handler(logging_config.file))
    if logging_config.console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ConsoleFormatter(use_color=sys.stderr.isatty()))
        handlers.append(console)
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=logging_config.level.upper(),
        handlers=handlers,
        force=True,
    )


def _file_handler(path: Path) -> logging.Handler:
    path = path.expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=5)
    except OSError as exc:
        raise ConfigError(f"Cannot open log file {path}: {exc}") from exc
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


__all__ = ["ConsoleFormatter", "configure_logging"]
