"""Logging for the bridge process.

stdout belongs to the ACP wire, so log records go to a file (``logging.file``
or ``ACP_LOG_FILE``) or to stderr when stderr is an interactive terminal.
When the editor launches us with piped stderr and no log file, nothing is
written at all.

Two extra levels sit around the standard ones: VERBOSE (15) for per-turn
detail and TRACE (5) for raw frames and CLI output.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acp_bridge.config import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

PACKAGE_LOGGER = "acp_bridge"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(component)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"

logger = logging.getLogger(PACKAGE_LOGGER)

_configured = False

# -v count -> level; anything past the end means TRACE
_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


def _named_level(name: str) -> int | None:
    name = name.upper()
    if name == "WARN":
        name = "WARNING"
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else None


class _BridgeFormatter(logging.Formatter):
    """Lowercase level names and the component suffix of the logger name."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        prefix = PACKAGE_LOGGER + "."
        record.component = (
            record.name[len(prefix):] if record.name.startswith(prefix) else "bridge"
        )
        return super().format(record)


def resolve_level(config: LoggingConfig | None = None) -> int:
    """Effective level: ACP_DEBUG=true, then ``verbose``, then ``level``, else INFO."""
    if os.environ.get("ACP_DEBUG", "").lower() == "true":
        return logging.DEBUG
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        index = max(config.verbose, 0)
        return _VERBOSITY_LEVELS[index] if index < len(_VERBOSITY_LEVELS) else TRACE
    if config.level:
        return _named_level(config.level) or logging.INFO
    return logging.INFO


def _file_handler(path: str) -> logging.Handler | None:
    path = os.path.expanduser(path)
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        if sys.stderr.isatty():
            print(f"[acp-bridge] cannot open log file {path}: {e}", file=sys.stderr)
        return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach handlers to the ``acp_bridge`` logger. Only the first call has an effect."""
    global _configured
    if _configured:
        return
    _configured = True

    level = resolve_level(config)
    logger.setLevel(level)

    log_path = (config.file if config else None) or os.environ.get("ACP_LOG_FILE")
    handler = _file_handler(log_path) if log_path else None
    if handler is None and sys.stderr.isatty():
        handler = logging.StreamHandler(sys.stderr)
    if handler is None:
        return

    handler.setLevel(level)
    handler.setFormatter(_BridgeFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """The package logger, or its child ``acp_bridge.<name>``."""
    return logger.getChild(name) if name else logger
