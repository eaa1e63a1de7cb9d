"""Logging setup for the receipt_capture namespace.

Modules log through ``logging.getLogger(__name__)``; entry points call
:func:`configure_logging` once. ``RECEIPT_CAPTURE_LOG_LEVEL`` (DEBUG, INFO,
WARNING, ERROR) overrides the default INFO level.
"""

from __future__ import annotations

import logging
import os
import sys


DEFAULT_LOG_LEVEL = logging.INFO
NAMESPACE = "receipt_capture"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_logging_configured = False


def configure_logging(level: int | None = None) -> None:
    global _logging_configured

    if _logging_configured:
        return

    if level is None:
        level = _LEVELS.get(os.environ.get("RECEIPT_CAPTURE_LOG_LEVEL", "").upper(), DEFAULT_LOG_LEVEL)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_DEBUG if level == logging.DEBUG else LOG_FORMAT))

    root_logger = logging.getLogger(NAMESPACE)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    root_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    if name != NAMESPACE and not name.startswith(f"{NAMESPACE}."):
        name = f"{NAMESPACE}.{name}"
    return logging.getLogger(name)

