"""Logging helpers: the extra TRACE level and CLI verbosity mapping."""

from __future__ import annotations

import logging
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Verbosity counter -> level: error (0), warn (1), info (2), debug (3), trace (4+)
_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG, TRACE)

_FORMAT = "[%(asctime)s %(levelname)s %(name)s] %(message)s"
_HANDLER_NAME = "llamap-cli"


def level_for(verbosity: int) -> int:
    """Map a verbosity counter to a :mod:`logging` level."""
    return _LEVELS[max(0, min(verbosity, len(_LEVELS) - 1))]


def configure_logging(verbosity: int = 2) -> int:
    """Install a stderr handler on the ``llamap`` logger.

    Third-party loggers (httpx, trafilatura...) stay at WARNING unless
    verbosity reaches trace.

    Returns:
        The level that was applied.
    """
    level = level_for(verbosity)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    handler.set_name(_HANDLER_NAME)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(TRACE if level == TRACE else max(level, logging.WARNING))

    logging.getLogger("llamap").setLevel(level)
    return level
