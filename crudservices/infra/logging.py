"""Logging helpers shared by every module."""

from __future__ import annotations

import logging

from ..config import Settings

ROOT_LOGGER_NAME = "crudservices"


def get_logger(name: str) -> logging.Logger:
    """Return a stdlib logger; module loggers live under ``crudservices``."""

    return logging.getLogger(name)


def configure_logging(settings: Settings) -> logging.Logger:
    """Apply the configured level/format to the package root logger."""

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(settings.logging.level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.logging.format))
        root.addHandler(handler)
    return root
