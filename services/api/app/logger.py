"""Logging setup for the Chai ordering API.

A single ``chai`` logger writes to stdout; modules ask for children via ``get_logger``.
"""

from __future__ import annotations

import logging
import sys

from services.api.app.settings import log_level

logger = logging.getLogger("chai")
logger.setLevel(log_level())

if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)

# Keep records out of the root logger so uvicorn does not print them twice.
logger.propagate = False


def get_logger(name: str | None = None) -> logging.Logger:
    if name:
        return logging.getLogger(f"chai.{name}")
    return logger
