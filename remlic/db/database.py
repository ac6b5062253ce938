"""Database facade: parameterized statements behind the retry layer."""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from remlic.core.config import GlobalConfig, get_config
from remlic.core.models import AffectedRowsResult
from remlic.resilience.classifier import classify_database_error
from remlic.resilience.retry import RetryConfig, RetryOperation, Sleep

from .pool import DRIVER_ERRORS, Connector, DatabasePool, normalize_error

logger = logging.getLogger(__name__)

QueryResult = Union[List[Dict[str, Any]], AffectedRowsResult]


def query_retry_config(settings: GlobalConfig) -> RetryConfig:
    """Retry policy for individual statements."""
    return RetryConfig.from_milliseconds(
        retries=settings.db_retry_attempts,
        min_timeout_ms=settings.db_retry_delay,
        max_timeout_ms=settings.db_retry_max_delay,
        factor=settings.db_retry_factor,
    )


def init_retry_config(settings: GlobalConfig) -> RetryConfig:
    """Retry policy for the startup connection."""
    return RetryConfig.from_milliseconds(
        retries=settings.db_init_retry_attempts,
        min_timeout_ms=settings.db_init_retry_delay,
        max_timeout_ms=settings.db_init_retry_max_delay,
        factor=settings.db_retry_factor,
    )


class Database:
    """Run statements against a self-healing pool.

    Example:
        ```python
        db = Database()
        await db.initialize()
        users = await db.query("SELECT * FROM users WHERE email = $1", [email])
        result = await db.query("DELETE FROM vehicles WHERE id = $1", [vehicle_id])
        print(result.affected_rows)
        ```
    """

    def __init__(
        self,
        settings: Optional[GlobalConfig] = None,
        pool: Optional[DatabasePool] = None,
        connector: Optional[Connector] = None,
        sleep: Optional[Sleep] = None,
    ):
        """Initialize database facade.

        Args:
            settings: Configuration, or the global configuration
            pool: Pool to use, built from settings if omitted
            connector: Pool factory passed to a newly built pool
            sleep: Delay function for retries, defaults to asyncio.sleep
        """
        self.settings = settings or get_config()
        self.pool = pool or DatabasePool(self.settings, connector=connector)
        self.retry_config = query_retry_config(self.settings)
        self.init_retry_config = init_retry_config(self.settings)
        self._sleep = sleep

    async def initialize(self) -> None:
        """Connect and probe the pool, retrying with the startup policy.

        Raises:
            DatabaseError: If the database is still unreachable after all retries
            ConfigurationError: If connection settings are missing
        """
        operation = RetryOperation(
            self.init_retry_config,
            classifier=classify_database_error,
            on_invalidate=lambda error: self.pool.invalidate(),
            sleep=self._sleep,
            name="database.initialize",
        )
        await operation.run(self.pool.acquire)
        logger.info("Database initialized")

    async def query(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> QueryResult:
        """Execute one parameterized statement.

        Args:
            sql: Statement text with ``$n`` placeholders
            params: Values bound to the placeholders

        Returns:
            Rows as dicts for row-returning statements, otherwise an
            AffectedRowsResult

        Raises:
            DatabaseError: Terminal failure, with the driver's code preserved
        """
        args = tuple(params or ())
        used: List[Any] = []

        async def attempt() -> QueryResult:
            handle = await self.pool.acquire()
            used.append(handle)
            return await self._execute(handle, sql, args)

        async def invalidate(error: BaseException) -> None:
            await self.pool.invalidate(used[-1] if used else None)

        operation = RetryOperation(
            self.retry_config,
            classifier=classify_database_error,
            on_invalidate=invalidate,
            sleep=self._sleep,
            name="database.query",
        )
        return await operation.run(attempt)

    async def _execute(self, handle: Any, sql: str, args: Sequence[Any]) -> QueryResult:
        try:
            async with handle.acquire() as conn:
                statement = await conn.prepare(sql)
                rows = await statement.fetch(*args)
                if statement.get_attributes():
                    return [dict(row) for row in rows]
                return AffectedRowsResult.from_status(statement.get_statusmsg())
        except DRIVER_ERRORS as e:
            raise normalize_error(e) from e

    async def close(self) -> None:
        await self.pool.close()


_database: Optional[Database] = None


def get_database() -> Database:
    """Get or create the process-wide database facade."""
    global _database
    if _database is None:
        _database = Database()
    return _database


async def initialize_database() -> Database:
    """Connect the process-wide database, retrying with the startup policy."""
    database = get_database()
    await database.initialize()
    return database


async def query(sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
    """Execute one statement on the process-wide database."""
    return await get_database().query(sql, params)


async def close_database() -> None:
    """Close and forget the process-wide database."""
    global _database
    if _database is not None:
        await _database.close()
        _database = None
