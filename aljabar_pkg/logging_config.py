"""Structured logging configuration for Aljabar.

Every module logs through ``get_logger(<module>)`` under the ``aljabar``
hierarchy. Engine failures are logged with an ``error_code`` extra, which the
formatter appends to the line.
"""

import logging
import sys
from datetime import datetime
from typing import Optional

from .config import LOG_LEVEL

ROOT_LOGGER = "aljabar"


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs timestamp, level, logger name, message and error code."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat()
        line = f"{timestamp} [{record.levelname}] {record.name}: {record.getMessage()}"
        code = getattr(record, "error_code", None)
        if code:
            line += f" (code={code})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: Optional[str] = None, log_file: Optional[str] = None
) -> logging.Logger:
    """Set up structured logging for the engine and the CLI.

    Args:
        level: Logging level name; defaults to ALJABAR_LOG_LEVEL (WARNING)
        log_file: Optional file path that receives a copy of stderr output

    Returns:
        The configured ``aljabar`` root logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.WARNING))

    # idempotent: repeated calls replace the handlers
    logger.handlers.clear()
    logger.propagate = False

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for one engine module, e.g. ``get_logger("solver")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
