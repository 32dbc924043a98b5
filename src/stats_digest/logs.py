"""Console logging for the CLI.

Library code only ever calls ``logging.getLogger(__name__)`` or uses the
logger it was handed; handlers are installed here, once, by the CLI.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "stats_digest"

_handler: RichHandler | None = None


def setup_logging(*, verbose: bool = False, console: Console | None = None) -> logging.Logger:
    """Attach a Rich handler to the package logger (idempotent)."""
    global _handler

    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.WARNING
    logger.setLevel(level)

    if _handler is None:
        _handler = RichHandler(
            console=console or Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
        logger.addHandler(_handler)
    _handler.setLevel(level)
    return logger


def reset_logging() -> None:
    """Remove the handler installed by :func:`setup_logging`. Used by tests."""
    global _handler

    if _handler is not None:
        logging.getLogger(LOGGER_NAME).removeHandler(_handler)
        _handler = None
    logging.getLogger(LOGGER_NAME).setLevel(logging.NOTSET)
