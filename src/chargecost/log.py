"""Logging setup for the command line."""

import logging
import os

from rich.logging import RichHandler


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Send package log records to the console through rich.

    Level is DEBUG with verbose, otherwise LOG_LEVEL (default INFO).
    """
    level = logging.DEBUG if verbose else os.environ.get("LOG_LEVEL", "INFO").upper()

    logger = logging.getLogger("chargecost")
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)

    return logger
