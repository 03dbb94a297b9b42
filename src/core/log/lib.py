"""Core logging implementation for sitewizard."""

import logging
import sys
from typing import Optional

__all__ = ["get_logger", "setup_logging"]

LOGGER_NAME = "sitewizard"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int | None = None, stream=sys.stderr) -> None:
    """Configure basic logging.

    Args:
        level: Logging level. Defaults to the LOG_LEVEL environment setting.
        stream: Output stream.
    """
    if level is None:
        from src.config import get_log_level

        level = get_log_level()

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=stream)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Name of the logger.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name or LOGGER_NAME)
