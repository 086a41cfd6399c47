"""Logging setup for psconnector.

Console records go to stderr; stdout carries command output only.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from .settings import get_settings

ROOT_LOGGER_NAME = "psconnector"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the psconnector logger.

    Args:
        level: Logging level name; defaults to the configured log level
        log_file: Optional file receiving the same records
        format_string: Optional record format

    Returns:
        The configured root psconnector logger
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    log_file_path = log_file or settings.log_file
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.addHandler(_handler(logging.StreamHandler(sys.stderr), log_level, formatter))
    if log_file_path:
        logger.addHandler(
            _handler(logging.FileHandler(log_file_path, encoding="utf-8"), log_level, formatter)
        )
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger namespaced under psconnector, configuring logging on first use."""
    if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        setup_logging()
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
