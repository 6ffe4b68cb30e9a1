"""
Logging utilities for FootyCast.

Every module logs to stdout through `get_logger`, with a formatted timestamp
and log level. The level can be raised or lowered with FOOTYCAST_LOG_LEVEL.
"""

import logging
import os
import time
from contextlib import contextmanager
from typing import Iterator, Optional


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger with the given name.

    If the root logger has no handlers configured yet, this function also
    configures a basic StreamHandler.

    Parameters
    ----------
    name : str | None
        Logger name. If None, the package logger is returned.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger_name = name if name is not None else "footycast"
    logger = logging.getLogger(logger_name)

    if not logging.getLogger().handlers:
        level_name = os.getenv("FOOTYCAST_LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level_name, logging.INFO),
            format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        )

    return logger


@contextmanager
def log_duration(logger: logging.Logger, label: str) -> Iterator[None]:
    """Log how long the wrapped block took, at DEBUG level."""
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.debug("%s took %.1f ms", label, (time.perf_counter() - started) * 1000)
