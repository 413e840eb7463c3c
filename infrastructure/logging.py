"""Centralized logging configuration."""
import sys

from loguru import logger


log_format = ' | '.join(
    (
        '<lk>{time:YYYY-MM-DD HH:mm:ss.SSS}</>',
        '<lvl>{level:<8}</>',
        '<c>{name}::{function}:{line}</>',
        '{message}',
        '<lk>{extra}</>',
    )
)


def setup_logging(level: str = 'INFO', serialize: bool = False) -> None:
    """Replace loguru's default sink with the application's stdout sink"""
    logger.remove()  # Remove default handler to avoid duplicate output
    if serialize:
        logger.add(sys.stdout, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stdout, level=level.upper(), format=log_format)
