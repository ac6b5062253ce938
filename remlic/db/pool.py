"""PostgreSQL connection pool that rebuilds itself after connection loss.

Provides async connection pooling using asyncpg.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import asyncpg

from remlic.core.config import GlobalConfig, get_config
from remlic.core.exceptions import ConfigurationError, DatabaseError
from remlic.resilience.classifier import os_error_code
from remlic.resilience.pool import ResilientPool

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[Any]]

# Exceptions raised by the driver or the socket underneath it
DRIVER_ERRORS = (
    asyncpg.exceptions.PostgresError,
    asyncpg.exceptions.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


def normalize_error(error: BaseException) -> Union[DatabaseError, ConfigurationError]:
    """Translate a driver exception into a ``{code, message}`` error.

    PostgreSQL errors keep their SQLSTATE; socket-level failures get symbolic
    OS codes such as ``ECONNREFUSED`` or ``ETIMEDOUT``.
    """
    if isinstance(error, (DatabaseError, ConfigurationError)):
        return error

    message = str(error) or type(error).__name__

    if isinstance(error, asyncpg.exceptions.PostgresError):
        return DatabaseError(message, code=error.sqlstate)
    if isinstance(error, asyncpg.exceptions.ClientConfigurationError):
        return ConfigurationError(f"Invalid database client configuration: {message}")
    if isinstance(error, asyncpg.exceptions.InterfaceError):
        if isinstance(error, ValueError):
            # Arguments that could not be encoded for the statement
            return DatabaseError(message, code="22000")
        lowered = message.lower()
        if "closed" in lowered or "closing" in lowered:
            return DatabaseError(message, code="CONNECTION_CLOSED")
        return DatabaseError(message, code="INTERFACE_ERROR")
    if isinstance(error, asyncio.TimeoutError):
        return DatabaseError(message, code="ETIMEDOUT")
    if isinstance(error, OSError):
        return DatabaseError(message, code=os_error_code(error))
    return DatabaseError(message)


class DatabasePool(ResilientPool[Any]):
    """Lazily created asyncpg pool, verified with ``SELECT 1`` before use."""

    def __init__(
        self,
        settings: Optional[GlobalConfig] = None,
        connector: Optional[Connector] = None,
    ):
        """Initialize database pool.

        Args:
            settings: Configuration, or the global configuration
            connector: Pool factory, defaults to asyncpg.create_pool
        """
        super().__init__("database")
        self.settings = settings or get_config()
        self._connector = connector or asyncpg.create_pool

    def connect_options(self) -> Dict[str, Any]:
        """Keyword arguments for the pool factory.

        Raises:
            ConfigurationError: If host, user or database name is not set
        """
        s = self.settings
        missing = [
            env
            for env, value in (
                ("DB_HOST", s.db_host),
                ("DB_USER", s.db_user),
                ("DB_NAME", s.db_name),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required database settings: {', '.join(missing)}"
            )

        return {
            "host": s.db_host,
            "port": s.db_port,
            "user": s.db_user,
            "password": s.db_password,
            "database": s.db_name,
            "min_size": min(s.db_min_connections, s.db_connection_limit),
            "max_size": s.db_connection_limit,
            "timeout": s.db_connect_timeout / 1000.0,
            "command_timeout": s.db_command_timeout / 1000.0,
            "max_inactive_connection_lifetime": s.db_idle_timeout / 1000.0,
            "ssl": "verify-full" if s.is_production else "disable",
        }

    async def _construct(self) -> Any:
        options = self.connect_options()
        logger.info(
            f"Creating database pool: host={options['host']}:{options['port']}, "
            f"database={options['database']}, user={options['user']}, "
            f"max_size={options['max_size']}"
        )
        try:
            return await self._connector(**options)
        except DRIVER_ERRORS as e:
            raise normalize_error(e) from e

    async def _verify(self, handle: Any) -> None:
        try:
            async with handle.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except DRIVER_ERRORS as e:
            raise normalize_error(e) from e

    async def _dispose(self, handle: Any) -> None:
        handle.terminate()

    async def _shutdown(self, handle: Any) -> None:
        await handle.close()
