"""Process startup: the database must be reachable before serving."""

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional, TypeVar

from remlic.core.exceptions import RemlicError, StartupError
from remlic.db import initialize_database

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[], Awaitable[T]]


async def start(listen: Optional[Listener] = None) -> Optional[T]:
    """Initialize the database, then hand control to ``listen``.

    Raises:
        StartupError: If the database cannot be initialized
    """
    try:
        await initialize_database()
    except RemlicError as e:
        raise StartupError(f"Database initialization failed: {e}") from e

    if listen is None:
        return None
    return await listen()


def run(listen: Optional[Listener] = None) -> Optional[T]:
    """Run the startup sequence; exit with status 1 if it fails."""
    try:
        return asyncio.run(start(listen))
    except StartupError as e:
        logger.error(f"Failed to start server: {e}")
        sys.exit(1)
