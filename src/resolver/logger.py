"""Application-level logging utilities."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional


def setup_logger(name: str = "resolver", level: Optional[int] = None) -> logging.Logger:
    """Return a configured logger instance."""
    if level is None:
        debug = os.getenv("DEBUG_RESOLVER", "false").lower() == "true"
        level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger(name)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False

    return logger


LOGGER: logging.Logger = setup_logger()

__all__ = ["LOGGER", "setup_logger"]
