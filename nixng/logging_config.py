"""
Logging configuration, set up once by the CLI entry point.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
this setup. The level comes from the ``-v`` count unless NG_LOG_LEVEL
names a valid level.
"""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Terse at WARNING/INFO, file:line context at DEBUG
_FMT_MINIMAL = "%(message)s"
_FMT_DEBUG = "%(name)s: %(message)s"

_NOISY_LOGGERS = ("markdown_it",)


def verbosity_to_level(verbosity: int) -> int:
    """Map a -v count to a logging level."""
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(verbosity: int = 0, level: Optional[str] = None) -> int:
    """
    Configure Python logging for the whole process.

    Args:
        verbosity: Number of -v flags given on the command line
        level: Explicit level name; falls back to NG_LOG_LEVEL, then verbosity

    Returns:
        The numeric level that was applied
    """
    numeric_level = _parse_level(level or os.environ.get("NG_LOG_LEVEL"))
    if numeric_level is None:
        numeric_level = verbosity_to_level(verbosity)

    debug = numeric_level <= logging.DEBUG
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=debug,
        show_path=debug,
        show_level=True,
        markup=False,
        rich_tracebacks=debug,
    )
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_FMT_DEBUG if debug else _FMT_MINIMAL))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    if not debug:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return numeric_level


def _parse_level(level: Optional[str]) -> Optional[int]:
    """Convert a level name to its numeric constant, or None if unknown."""
    if not level:
        return None
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return None
    return numeric
