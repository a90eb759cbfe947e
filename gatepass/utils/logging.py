"""Centralized logging configuration.

Every module logs through a child of the ``gatepass`` logger, so a single
stdout handler (attached once) serves the whole package. Structured context
passed through ``extra={...}`` is appended to the message line.
"""

import logging
import sys
from typing import Optional

PACKAGE_LOGGER_NAME = "gatepass"

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED_ATTRS = set(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class ContextFormatter(logging.Formatter):
    """Formatter that renders ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if context:
            rendered = " ".join(f"{key}={value!r}" for key, value in sorted(context.items()))
            line = f"{line} | {rendered}"
        return line


def _package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER_NAME)
    if not root.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(
            ContextFormatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(console_handler)
        root.setLevel(logging.INFO)
    return root


def set_log_level(level: str) -> None:
    """Set the level of the package logger (and so of every module logger)."""
    _package_logger().setLevel(getattr(logging, level.upper()))


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Logger that propagates to the package handler
    """
    _package_logger()

    if name != PACKAGE_LOGGER_NAME and not name.startswith(f"{PACKAGE_LOGGER_NAME}."):
        name = f"{PACKAGE_LOGGER_NAME}.{name}"

    logger = logging.getLogger(name)
    if level:
        logger.setLevel(getattr(logging, level.upper()))
    return logger
