"""Logging setup for the devstation CLI.

Console output goes through :class:`rich.logging.RichHandler` on stderr.
When Rich is not installed, a plain :class:`logging.StreamHandler` is
used instead so that bootstrap paths keep working.
"""

from __future__ import annotations

import logging
import sys
import time

PROJECT_LOGGER = "devstation"

_PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_PLAIN_DATEFMT = "%Y-%m-%dT%H:%M:%SZ"


def _rich_handler(level: int, verbose: bool) -> logging.Handler | None:
    try:
        from rich.console import Console
        from rich.logging import RichHandler
    except ModuleNotFoundError:
        return None

    handler = RichHandler(
        level=level,
        console=Console(stderr=True),
        rich_tracebacks=True,
        markup=False,
        show_time=verbose,
        show_path=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def _plain_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    formatter = logging.Formatter(_PLAIN_FORMAT, datefmt=_PLAIN_DATEFMT)
    formatter.converter = time.gmtime
    handler.setFormatter(formatter)
    return handler


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a console handler to the ``devstation`` logger (idempotent).

    Parameters
    ----------
    verbose:
        Lower the threshold to DEBUG so that every executed command is
        shown.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(PROJECT_LOGGER)
    logger.setLevel(level)

    for existing in list(logger.handlers):
        if getattr(existing, "_devstation", False):
            existing.setLevel(level)
            return logger

    handler = _rich_handler(level, verbose) or _plain_handler(level)
    handler._devstation = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
