"""
Logging helpers.

Every module obtains its logger through ``get_logger(__name__)`` so that
all output hangs below the ``querylab`` logger and can be configured in one
place.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_ROOT_LOGGER_NAME = "querylab"


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the ``querylab`` hierarchy."""
    if name != _ROOT_LOGGER_NAME and not name.startswith(_ROOT_LOGGER_NAME + "."):
        name = f"{_ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(level: str = "INFO", handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Configure the ``querylab`` logger.

    Args:
        level: Level name (e.g. "DEBUG", "INFO")
        handler: Optional handler to install instead of a stderr stream handler

    Returns:
        The configured package logger

    Calling this more than once replaces the previously installed handler.
    """
    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
