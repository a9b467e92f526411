"""
Logging setup for hostctl, applied once by the CLI group callback.

Modules log through ``logging.getLogger(__name__)``; nothing below the
CLI configures handlers. The console level comes from, in order:

    --debug / --verbose / --quiet  >  HOSTCTL_LOG_LEVEL  >  WARNING

HOSTCTL_LOG_FILE adds a file handler at HOSTCTL_LOG_FILE_LEVEL (or the
console level). Executors log every remote command at DEBUG, so a
DEBUG file log is a full transcript of what ran on the host.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping

LOG_LEVEL_ENV = "HOSTCTL_LOG_LEVEL"
LOG_FILE_ENV = "HOSTCTL_LOG_FILE"
LOG_FILE_LEVEL_ENV = "HOSTCTL_LOG_FILE_LEVEL"

# Console format per level threshold, most verbose first
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT_FORMAT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# paramiko logs every channel open/close at DEBUG
_NOISY_LOGGERS = ("paramiko", "paramiko.transport", "asyncio")


def level_from_flags(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Console level name for the CLI flags, falling back to the env var."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get(LOG_LEVEL_ENV) or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with hostctl's.

    Args:
        level: Console level name. Unknown names mean WARNING.
        log_file: Optional path of a log file to append to.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold paramiko and asyncio at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))

    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_file_handler(log_file, file_level))
        root_level = min(root_level, file_level)
    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT_FORMAT, None
    for threshold, threshold_fmt, threshold_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = threshold_fmt, threshold_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name → numeric constant; unknown names mean WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
