"""Logging helpers for Rubrica.

Every module logs under the ``rubrica`` namespace via :func:`get_logger`.
Configuration happens once, from the CLI entry point; host
applications remain free to attach their own handlers instead.
"""

from __future__ import annotations

import logging
from typing import Any

LOGGER_NAME = "rubrica"
_configured = False


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the shared logger, or a child of it (``rubrica.<name>``)."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def configure_logging(level: str | None = None, *, force: bool = False, **extra: Any) -> None:
    """Configure the rubrica logger once.

    Later calls only adjust the level unless ``force`` is True.
    """
    global _configured
    logger = get_logger()
    if not force and _configured:
        if level:
            logger.setLevel(level.upper())
        return
    if level:
        logger.setLevel(level.upper())
    if not logger.handlers or force:
        h = logging.StreamHandler()
        fmt = extra.get(
            "format",
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        datefmt = extra.get("datefmt", "%H:%M:%S")
        h.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        if force:
            logger.handlers.clear()
        logger.addHandler(h)
    logger.propagate = False
    _configured = True
