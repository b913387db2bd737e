"""
Logging setup.

Replaces loguru's default handler with a single stderr sink at the
configured level.
"""

import sys

from loguru import logger

from storefront.core.config import settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str | None = None) -> None:
    """Configure the global loguru logger."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )
