"""Loguru configuration for termsync."""

import sys
from pathlib import Path

from loguru import logger

from termsync.core.config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure loguru based on settings.

    Removes the default handler, adds a colorized stderr sink and, when
    ``log_file`` is set, a file sink rotated daily.

    Args:
        settings: Optional settings override. Uses default if not provided.
    """
    settings = settings or get_settings()
    level = "DEBUG" if settings.debug else settings.log_level

    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        colorize=True,
    )

    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            format=LOG_FORMAT,
        )

    logger.debug(f"Logging configured at level {level}")
