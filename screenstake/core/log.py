"""Log output configuration."""
import os
import sys
from loguru import logger

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "{message}"
)


def configure_logging(level: str = None) -> None:
    """Send log records at ``level`` and above to stderr.

    ``SCREEN_STAKE_LOG_LEVEL`` is used when no level is passed.
    """
    level = (level or os.getenv("SCREEN_STAKE_LOG_LEVEL", "INFO")).upper()
    logger.remove()
    logger.add(sys.stderr, level=level, format=DEFAULT_FORMAT)
