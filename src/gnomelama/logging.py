"""The ``gnomelama`` logger tree.

Every module logs through ``get_logger("<area>")``. Nothing is printed
until ``setup_logging`` runs: the CLI calls it once with the loaded
``LoggingConfig``. Records go to ``logging.file`` (or ``$GNOMELAMA_LOG``)
when set, otherwise to stderr, and only when stderr is a terminal so the
chat display is never interleaved with log noise in a pipe.

Two extra levels sit around the stdlib ones. VERBOSE (15) marks stream
lifecycle events such as a stream finishing. TRACE (5) is for individual
wire lines.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gnomelama.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("gnomelama")

_configured = False

_NAMED_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Index is the -v count; anything past the end means TRACE
_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level for a logging section.

    A ``verbose`` count wins over the ``level`` name. Unknown names fall
    back to INFO.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        if 0 <= config.verbose < len(_VERBOSITY_LEVELS):
            return _VERBOSITY_LEVELS[config.verbose]
        return TRACE
    if config.level:
        return _NAMED_LEVELS.get(config.level.upper(), logging.INFO)
    return logging.INFO


def _log_destination(config: LoggingConfig | None) -> str | None:
    path = config.file if config and config.file else os.environ.get("GNOMELAMA_LOG")
    return os.path.expanduser(path) if path else None


def _attach(handler: logging.Handler, formatter: logging.Formatter, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install handlers on the ``gnomelama`` logger. Only the first call counts.

    Args:
        config: Logging section of the loaded config (level, verbose, file).
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = resolve_level(config)
    logger.setLevel(level)
    formatter = _LowercaseLevelFormatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
    )

    path = _log_destination(config)
    if path:
        try:
            _attach(logging.FileHandler(path, mode="a", encoding="utf-8"), formatter, level)
            return
        except OSError as e:
            if sys.stderr.isatty():
                print(f"[gnomelama] cannot write log file {path}: {e}", file=sys.stderr)

    if sys.stderr.isatty():
        _attach(logging.StreamHandler(sys.stderr), formatter, level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Child of the ``gnomelama`` logger, e.g. ``get_logger("transport")``.

    With no name, the ``gnomelama`` logger itself.
    """
    return logger.getChild(name) if name else logger
