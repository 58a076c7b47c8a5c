"""logger.py - Logging setup shared by the ledgerkv modules."""

from __future__ import annotations

import logging

from .config import DEFAULT_LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | int = DEFAULT_LOG_LEVEL) -> None:
    """Attach a stream handler to the ``ledgerkv`` logger hierarchy once."""
    global _configured
    root = logging.getLogger("ledgerkv")
    root.setLevel(level)
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
