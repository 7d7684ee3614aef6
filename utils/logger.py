"""Logging utilities for the book analysis pipeline."""
import logging
from typing import Optional, Union

from rich.logging import RichHandler
from rich.console import Console

import config

# Logs go to stderr so CLI tables on stdout stay clean
console = Console(stderr=True)


def setup_logger(name: str, level: Optional[Union[int, str]] = None) -> logging.Logger:
    """Set up a logger with rich formatting.

    Args:
        name: Logger name
        level: Logging level; defaults to config.LOG_LEVEL

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level if level is not None else config.LOG_LEVEL)

    # Avoid adding multiple handlers
    if not logger.handlers:
        handler = RichHandler(
            rich_tracebacks=True,
            console=console,
            show_time=True,
            show_path=False,
            markup=False
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
