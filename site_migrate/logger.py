# === FILE: site_migrate/logger.py ===
"""Logging setup for site_migrate.

Everything logs to the ``SiteMigrate`` logger: modules either import
:data:`logger` or call ``logging.getLogger("SiteMigrate")``. The console handler
writes to stdout by default; the CLI moves it to stderr because ``compare``
prints its events on stdout.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, TextIO, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteMigrate"

_LevelT = Union[int, str]

# rotating log file: 5 MiB, three backups
_MAX_BYTES: Final[int] = 5 * 1024 * 1024
_BACKUPS: Final[int] = 3


def _console_stream(name: str) -> TextIO:
    if name not in ("stdout", "stderr"):
        raise ValueError(f"Unknown log stream: {name}")
    return sys.stderr if name == "stderr" else sys.stdout


def _with_format(handler: logging.Handler, fmt: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
    stream: str = "stdout",
) -> logging.Logger:
    """(Re)configure the ``SiteMigrate`` logger.

    *stream* is ``"stdout"`` or ``"stderr"``; *log_file* adds a rotating file
    handler next to the console one. With *replace_handlers* false the new
    handlers are appended to the existing ones.
    """
    lg = logging.getLogger(LOGGER_NAME)
    lg.setLevel(level)

    if replace_handlers:
        lg.handlers.clear()

    lg.addHandler(_with_format(logging.StreamHandler(_console_stream(stream)), log_format))
    if log_file is not None:
        file_handler = RotatingFileHandler(
            filename=str(log_file), maxBytes=_MAX_BYTES, backupCount=_BACKUPS, encoding="utf-8"
        )
        lg.addHandler(_with_format(file_handler, log_format))

    lg.propagate = False
    return lg


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    stream: str = "stdout",
) -> logging.Logger:
    return configure(level=level, log_file=log_file, log_format=log_format, stream=stream)


logger: logging.Logger = init_logging()

__all__ = ["logger", "configure", "init_logging", "LOGGER_NAME", "DEFAULT_FORMAT"]
