"""Logging setup for the just_built package."""

import logging
from typing import Union

LOGGER_NAME = "just_built"


def setup_logging(level: Union[str, int] = logging.INFO) -> logging.Logger:
    """
    Install a single stream handler on the package logger.

    Existing handlers are cleared so calling this twice does not
    duplicate output.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)

    return logger
