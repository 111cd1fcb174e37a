"""Logging setup shared by the API service and the CLI."""

from __future__ import annotations

import sys

from loguru import logger

CONSOLE_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def configure_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Replace loguru's default sink with the project's console format.

    Args:
        level: Minimum level for both sinks
        log_file: Optional path of a rotating log file
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)
    if log_file:
        logger.add(
            log_file,
            level=level.upper(),
            format=FILE_FORMAT,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )
