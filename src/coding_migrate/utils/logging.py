"""Logging utilities for the Coding migration tool."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss}</green> | '
    '<level>{level: <8}</level> | '
    '<cyan>{extra[component]}</cyan> | '
    '<level>{message}</level>'
)

FILE_FORMAT = (
    '{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[component]} | '
    '{name}:{function}:{line} | {message}'
)


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Configure loguru sinks for a migration run.

    Records without a bound ``component`` are tagged ``-`` so the formats
    above never fail on a missing extra field.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path, rotated at 10 MB
        log_format: Optional console format overriding the default
    """
    logger.remove()
    logger.configure(extra={'component': '-'})

    logger.add(
        sys.stderr,
        format=log_format or CONSOLE_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation='10 MB',
            retention='30 days',
            compression='gz',
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    logger.bind(component='logging').debug(f'Logging initialized with level: {level}')
    if log_file:
        logger.bind(component='logging').debug(f'Log file: {log_file}')


def get_logger(component: str, base=None):
    """Return a logger bound to ``component``.

    Args:
        component: Component name shown in every record
        base: Optional injected logger to bind instead of the global one

    Returns:
        Bound loguru logger
    """
    return (base or logger).bind(component=component)
