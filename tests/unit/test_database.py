"""Tests for the database facade and pool."""

import asyncio
import errno

import asyncpg
import pytest

from remlic.core.exceptions import ConfigurationError, DatabaseError
from remlic.core.models import AffectedRowsResult
from remlic.core.types import PoolState
from remlic.db import database as database_module
from remlic.db.database import Database, query_retry_config
from remlic.db.pool import DatabasePool, normalize_error


def refused():
    return ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")


class TestNormalizeError:
    """Driver exceptions become {code, message} errors."""

    def test_postgres_error_keeps_sqlstate(self):
        error = normalize_error(
            asyncpg.exceptions.UniqueViolationError("duplicate key value")
        )

        assert isinstance(error, DatabaseError)
        assert error.code == "23505"
        assert "duplicate key value" in error.message

    def test_syntax_error(self):
        error = normalize_error(asyncpg.exceptions.PostgresSyntaxError("syntax error"))

        assert error.code == "42601"

    def test_connection_refused(self):
        error = normalize_error(refused())

        assert error.code == "ECONNREFUSED"
        assert error.to_dict() == {"code": "ECONNREFUSED", "message": str(refused())}

    def test_timeout(self):
        assert normalize_error(asyncio.TimeoutError()).code == "ETIMEDOUT"

    def test_closed_connection(self):
        error = normalize_error(asyncpg.exceptions.InterfaceError("connection is closed"))

        assert error.code == "CONNECTION_CLOSED"

    def test_existing_error_is_returned_unchanged(self):
        original = DatabaseError("x", code="08006")

        assert normalize_error(original) is original


class TestDatabasePool:
    """Test pool construction against a fake driver."""

    @pytest.mark.asyncio
    async def test_connect_options_from_settings(self, settings, driver):
        pool = DatabasePool(settings, connector=driver)

        await pool.acquire()

        options = driver.pools[0].options
        assert options["host"] == "db.internal"
        assert options["database"] == "licenses"
        assert options["max_size"] == 10
        assert options["timeout"] == 10.0
        assert options["ssl"] == "disable"
        assert driver.probes == 1

    def test_production_requires_verified_tls(self, settings):
        production = settings.model_copy(update={"environment": "production"})

        options = DatabasePool(production).connect_options()

        assert options["ssl"] == "verify-full"

    @pytest.mark.asyncio
    async def test_missing_settings_raise_configuration_error(self, settings, driver):
        incomplete = settings.model_copy(update={"db_host": None, "db_name": None})
        pool = DatabasePool(incomplete, connector=driver)

        with pytest.raises(ConfigurationError) as exc_info:
            await pool.acquire()

        assert "DB_HOST" in str(exc_info.value)
        assert "DB_NAME" in str(exc_info.value)
        assert driver.connect_calls == 0

    @pytest.mark.asyncio
    async def test_probe_failure_terminates_pool(self, settings, driver):
        driver.probe_errors = [refused()]
        pool = DatabasePool(settings, connector=driver)

        with pytest.raises(DatabaseError) as exc_info:
            await pool.acquire()

        assert exc_info.value.code == "ECONNREFUSED"
        assert driver.pools[0].terminated
        assert pool.state == PoolState.ABSENT

    @pytest.mark.asyncio
    async def test_close_is_graceful(self, settings, driver):
        pool = DatabasePool(settings, connector=driver)
        await pool.acquire()

        await pool.close()

        assert driver.pools[0].closed
        assert not driver.pools[0].terminated


class TestDatabaseQuery:
    """Test query() through the retry layer."""

    @pytest.mark.asyncio
    async def test_select_returns_rows(self, settings, driver, sleep):
        driver.outcomes = [([{"id": 1, "email": "a@example.com"}], ["id", "email"], "SELECT 1")]
        db = Database(settings, connector=driver, sleep=sleep)

        rows = await db.query("SELECT id, email FROM users WHERE email = $1", ["a@example.com"])

        assert rows == [{"id": 1, "email": "a@example.com"}]
        assert driver.prepared[0].args == ("a@example.com",)

    @pytest.mark.asyncio
    async def test_dml_returns_affected_rows(self, settings, driver, sleep):
        driver.outcomes = [([], [], "UPDATE 3")]
        db = Database(settings, connector=driver, sleep=sleep)

        result = await db.query("UPDATE vehicles SET expiry = $1", ["2027-01-01"])

        assert result == AffectedRowsResult(command="UPDATE", affected_rows=3)

    @pytest.mark.asyncio
    async def test_connection_refused_twice_then_success(self, settings, driver, sleep):
        """retries=3, min 2s, factor 2: two delays and two pool rebuilds."""
        db = Database(settings, connector=driver, sleep=sleep)
        await db.initialize()
        driver.outcomes = [refused(), refused(), ([{"n": 1}], ["n"], "SELECT 1")]

        rows = await db.query("SELECT 1 AS n")

        assert rows == [{"n": 1}]
        assert sleep.delays == [2.0, 4.0]
        assert len(driver.pools) == 3
        assert db.pool.stats.invalidations == 2
        assert driver.pools[0].terminated
        assert driver.pools[1].terminated
        assert not driver.pools[2].terminated

    @pytest.mark.asyncio
    async def test_constraint_violation_is_terminal(self, settings, driver, sleep):
        """One attempt, original code preserved, pool untouched."""
        db = Database(settings, connector=driver, sleep=sleep)
        driver.outcomes = [asyncpg.exceptions.UniqueViolationError("duplicate key value")]

        with pytest.raises(DatabaseError) as exc_info:
            await db.query("INSERT INTO users (email) VALUES ($1)", ["a@example.com"])

        assert exc_info.value.code == "23505"
        assert isinstance(exc_info.value.__cause__, asyncpg.exceptions.UniqueViolationError)
        assert len(driver.statements) == 1
        assert sleep.delays == []
        assert db.pool.is_live
        assert db.pool.stats.invalidations == 0
        assert len(driver.pools) == 1

    @pytest.mark.asyncio
    async def test_unclassified_error_retries_on_same_pool(self, settings, driver, sleep):
        db = Database(settings, connector=driver, sleep=sleep)
        driver.outcomes = [
            asyncpg.exceptions.SerializationError("could not serialize access"),
            ([], [], "DELETE 1"),
        ]

        result = await db.query("DELETE FROM prpd WHERE id = $1", [7])

        assert result.affected_rows == 1
        assert len(driver.pools) == 1
        assert db.pool.stats.invalidations == 0
        assert sleep.delays == [2.0]

    @pytest.mark.asyncio
    async def test_exhaustion_surfaces_last_error(self, settings, driver, sleep):
        db = Database(settings, connector=driver, sleep=sleep)
        driver.outcomes = [refused() for _ in range(4)]

        with pytest.raises(DatabaseError) as exc_info:
            await db.query("SELECT 1")

        assert exc_info.value.code == "ECONNREFUSED"
        assert len(driver.statements) == 4
        assert sleep.delays == [2.0, 4.0, 8.0]
        assert not db.pool.is_live

    @pytest.mark.asyncio
    async def test_rebuild_failure_is_retried(self, settings, driver, sleep):
        """The database coming back mid-sequence is picked up by the next attempt."""
        db = Database(settings, connector=driver, sleep=sleep)
        driver.connect_errors = [refused(), None]
        driver.outcomes = [([{"ok": True}], ["ok"], "SELECT 1")]

        rows = await db.query("SELECT true AS ok")

        assert rows == [{"ok": True}]
        assert driver.connect_calls == 2
        assert sleep.delays == [2.0]


class TestDatabaseInitialize:
    """Test the startup connection policy."""

    @pytest.mark.asyncio
    async def test_initialize_retries_until_reachable(self, settings, driver, sleep):
        driver.connect_errors = [refused(), refused(), None]
        db = Database(settings, connector=driver, sleep=sleep)

        await db.initialize()

        assert db.pool.is_live
        assert sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_initialize_gives_up_after_policy(self, settings, driver, sleep):
        driver.connect_errors = [refused() for _ in range(6)]
        db = Database(settings, connector=driver, sleep=sleep)

        with pytest.raises(DatabaseError):
            await db.initialize()

        assert driver.connect_calls == 6
        assert sleep.delays == [2.0, 4.0, 8.0, 16.0, 32.0]

    @pytest.mark.asyncio
    async def test_initialize_does_not_retry_bad_password(self, settings, driver, sleep):
        driver.connect_errors = [
            asyncpg.exceptions.InvalidPasswordError("password authentication failed")
        ]
        db = Database(settings, connector=driver, sleep=sleep)

        with pytest.raises(DatabaseError) as exc_info:
            await db.initialize()

        assert exc_info.value.code == "28P01"
        assert driver.connect_calls == 1


class TestModuleFunctions:
    """Test the process-wide database helpers."""

    @pytest.mark.asyncio
    async def test_singleton_lifecycle(self, settings, driver, sleep, monkeypatch):
        monkeypatch.setattr(database_module, "_database", None)
        monkeypatch.setattr(
            database_module,
            "Database",
            lambda: Database(settings, connector=driver, sleep=sleep),
        )

        db = await database_module.initialize_database()
        assert database_module.get_database() is db

        driver.outcomes = [([], [], "INSERT 0 1")]
        result = await database_module.query("INSERT INTO work (title) VALUES ($1)", ["x"])
        assert result.affected_rows == 1

        await database_module.close_database()
        assert driver.pools[0].closed
        assert database_module._database is None

    def test_query_policy_from_settings(self, settings):
        config = query_retry_config(settings)

        assert config.retries == 3
        assert config.min_timeout == 2.0
        assert config.factor == 2.0
        assert config.max_timeout == 30.0
