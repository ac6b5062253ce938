"""Logging setup for Remlic processes."""

import logging
from typing import Optional

from .config import GlobalConfig, get_config


def setup_logging(settings: Optional[GlobalConfig] = None) -> None:
    """Configure the root logger from REMLIC_LOG_LEVEL / REMLIC_LOG_FORMAT.

    Args:
        settings: Configuration to read, or the global configuration
    """
    settings = settings or get_config()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=settings.log_format, force=True)
