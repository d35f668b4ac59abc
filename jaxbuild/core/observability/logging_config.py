"""
Logging configuration — set up once by the CLI entry point.

Every module does ``logger = logging.getLogger(__name__)`` and
inherits this. The build tool's own output is streamed straight to the
terminal by the shell adapter, so console logging stays short: phase
markers and decisions at INFO, file:line detail at DEBUG.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  --quiet  >  JAXBUILD_LOG_LEVEL  >  WARNING

A full-detail copy can go to JAXBUILD_LOG_FILE (level
JAXBUILD_LOG_FILE_LEVEL), which is handy on CI where the terminal
scrolls away under a multi-hour Bazel build.
"""

from __future__ import annotations

import logging
import sys

# ── Format strings ──────────────────────────────────────────────

# WARNING level: just the message
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped, build phases are long
_FMT_VERBOSE = "%(asctime)s [jaxbuild] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: file:line detail
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: full detail, with the date
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Libraries that log on our behalf and are noisy below WARNING
_NOISY_LOGGERS = ("urllib3", "filelock", "pip")


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env_level: str | None = None,
) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return env_level or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to ``level``.
        quiet_third_party: Keep noisy library loggers at WARNING unless
            the console is at DEBUG.
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

    # Root must let through whatever the most verbose handler wants
    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name to its numeric value, WARNING when unknown."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
