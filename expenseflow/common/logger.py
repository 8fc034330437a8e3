"""Logging setup for expenseflow.

Every module logs through ``logging.getLogger(__name__)``. Configuring
the ``expenseflow`` package logger once, at application start, routes
all of them to the console and optionally to a rotating file.
"""

import logging
import logging.handlers
import os
from typing import Optional

PACKAGE_LOGGER = "expenseflow"

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _level(value: str) -> int:
    name = value.upper()
    if name not in LEVELS:
        raise ValueError(f"Invalid log level: {value}. Must be one of: {', '.join(LEVELS)}")
    return getattr(logging, name)


def _rotating_file(path: str, max_bytes: int, backup_count: int) -> logging.Handler:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)


def setup_logger(
    name: str = PACKAGE_LOGGER,
    log_dir: str = "./logs",
    level: str = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    file_logging: bool = False,
    console_logging: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Attach handlers to a named logger.

    Calling it again only updates the level; handlers are added once.

    Args:
        name: Logger to configure; the package name covers every module
        log_dir: Directory for ``<name>.log`` when file logging is on
        level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL (any case)
        log_format: Record format, defaults to ``DEFAULT_FORMAT``
        date_format: Timestamp format, ISO 8601 by default
        file_logging: Write to a rotating file in ``log_dir``
        console_logging: Write to stderr
        max_bytes: File size that triggers rotation
        backup_count: Rotated files to keep

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    logger = logging.getLogger(name)
    logger.setLevel(_level(level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT, datefmt=date_format or ISO_DATE_FORMAT)

    handlers = []
    if file_logging:
        handlers.append(_rotating_file(os.path.join(log_dir, f"{name}.log"), max_bytes, backup_count))
    if console_logging:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def configure_logging(settings) -> logging.Logger:
    """Configure the package logger from application settings."""
    return setup_logger(
        PACKAGE_LOGGER,
        log_dir=settings.log_dir,
        level=settings.log_level,
        file_logging=settings.log_to_file,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
