"""
Logging configuration — set up once by the CLI entrypoint.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
what is configured here. Level precedence:
    CLI flag  >  PROVISION_LOG_LEVEL  >  WARNING

PROVISION_LOG_FILE adds a file handler, PROVISION_LOG_FILE_LEVEL sets
its level (default: same as the console). A provisioning run can take
an hour, so the file keeps full timestamps while the console stays
terse.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ENV_LEVEL = "PROVISION_LOG_LEVEL"
ENV_FILE = "PROVISION_LOG_FILE"
ENV_FILE_LEVEL = "PROVISION_LOG_FILE_LEVEL"

# Console format per level threshold, most verbose first
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s  %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = "%(levelname)s: %(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(process)d] %(name)s  %(message)s"
_FILE_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def resolve_level(flag_level: str | None = None) -> str:
    """Pick the console level: explicit flag, then env var, then WARNING."""
    if flag_level:
        return flag_level
    return os.environ.get(ENV_LEVEL, "WARNING")


def console_formatter(level: int) -> logging.Formatter:
    """Formatter for the console, more detailed as the level drops."""
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_DEFAULT)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file; defaults to $PROVISION_LOG_FILE.
        log_file_level: Level for the file; defaults to
            $PROVISION_LOG_FILE_LEVEL, then to ``level``.
    """
    console_level = _parse_level(level)
    log_file = log_file or os.environ.get(ENV_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_FILE_LEVEL)

    handlers: list[logging.Handler] = []

    stderr = logging.StreamHandler(sys.stderr)
    stderr.setLevel(console_level)
    stderr.setFormatter(console_formatter(console_level))
    handlers.append(stderr)

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(Path(log_file).expanduser(), file_level))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        if isinstance(old, logging.FileHandler):
            old.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    # A closed stderr must never abort a half-finished run
    logging.raiseExceptions = False


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to number; anything unrecognised means WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
