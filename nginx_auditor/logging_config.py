"""
Logging configuration, set up once by the CLI entry point.

Every module that does ``logger = logging.getLogger(__name__)`` inherits
this config.

Levels are resolved in precedence order:
    CLI flag  >  NGINX_AUDITOR_LOG_LEVEL env var  >  WARNING (default)
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "NGINX_AUDITOR_LOG_LEVEL"

# ---- Format strings ----

# WARNING level: message only
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d - %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d - %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# The kubernetes client logs every request at DEBUG through urllib3
_NOISY_LOGGERS = ("urllib3", "kubernetes", "asyncio")


def resolve_level(flag_level: str | None = None) -> str:
    """Pick the effective level name from the CLI flag, the env var, then WARNING."""

    if flag_level:
        return flag_level.upper()
    env_level = os.environ.get(LOG_LEVEL_ENV)
    if env_level:
        return env_level.upper()
    return "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the whole process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file written at full detail.
        quiet_third_party: Keep noisy third-party loggers at WARNING
            unless running at DEBUG.
    """
    numeric_level = _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(numeric_level)

    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(numeric_level)
        handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(handler)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
