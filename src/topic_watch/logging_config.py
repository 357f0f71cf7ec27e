"""Logging configuration for topic-watch."""

import sys
from pathlib import Path

from loguru import logger


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure loguru with appropriate level.

    Args:
        verbose: Log debug messages.
        log_file: Also append full-format records to this file.
    """
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level, format="{level.icon} {message}")
    if log_file is not None:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5)
