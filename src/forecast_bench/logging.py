"""Logger factory shared by all forecast_bench modules."""

from __future__ import annotations

import logging

from . import config


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Return a logger with a single stream handler attached.

    The level defaults to ``config.LOG_LEVEL``; handlers are only added the
    first time a given name is requested.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.setLevel(level or config.LOG_LEVEL)
    return logger
