"""Pytest configuration and fakes for the database and SMTP drivers."""

import errno
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import pytest

from remlic.core.config import GlobalConfig


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def connection_refused() -> ConnectionRefusedError:
    return ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")


# --- Database driver fakes -------------------------------------------------


class FakeStatement:
    def __init__(self, rows: List[dict], columns: List[str], status: str):
        self.rows = rows
        self.columns = columns
        self.status = status
        self.args: tuple = ()

    async def fetch(self, *args: Any) -> List[dict]:
        self.args = args
        return self.rows

    def get_attributes(self) -> List[str]:
        return self.columns

    def get_statusmsg(self) -> str:
        return self.status


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    async def prepare(self, sql: str) -> FakeStatement:
        driver = self.pool.driver
        driver.statements.append(sql)
        outcome = driver.outcomes.pop(0) if driver.outcomes else ([], [], "SELECT 0")
        if isinstance(outcome, BaseException):
            raise outcome
        rows, columns, status = outcome
        statement = FakeStatement(rows, columns, status)
        driver.prepared.append(statement)
        return statement

    async def fetchval(self, sql: str) -> int:
        driver = self.pool.driver
        driver.probes += 1
        if driver.probe_errors:
            error = driver.probe_errors.pop(0)
            if error is not None:
                raise error
        return 1


class FakePool:
    def __init__(self, driver: "FakeDriver", options: dict):
        self.driver = driver
        self.options = options
        self.terminated = False
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield FakeConnection(self)

    def terminate(self) -> None:
        self.terminated = True

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    """Callable replacing asyncpg.create_pool.

    ``connect_errors`` and ``probe_errors`` are consumed one per pool build
    (``None`` means succeed); ``outcomes`` one per statement, either an
    exception or a ``(rows, columns, status)`` tuple.
    """

    def __init__(self):
        self.pools: List[FakePool] = []
        self.connect_errors: List[Optional[BaseException]] = []
        self.probe_errors: List[Optional[BaseException]] = []
        self.outcomes: List[Any] = []
        self.statements: List[str] = []
        self.prepared: List[FakeStatement] = []
        self.connect_calls = 0
        self.probes = 0

    async def __call__(self, **options: Any) -> FakePool:
        self.connect_calls += 1
        if self.connect_errors:
            error = self.connect_errors.pop(0)
            if error is not None:
                raise error
        pool = FakePool(self, options)
        self.pools.append(pool)
        return pool


# --- SMTP fakes ------------------------------------------------------------


class FakeSMTP:
    def __init__(self, server: "FakeSMTPServer"):
        self.server = server
        self.closed = False

    def noop(self):
        return self.server.noop_reply

    def send_message(self, message, to_addrs=None):
        server = self.server
        server.send_calls += 1
        if server.send_outcomes:
            outcome = server.send_outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            refused = outcome
        else:
            refused = {}
        server.sent.append((message, list(to_addrs or [])))
        return refused

    def close(self) -> None:
        self.closed = True


class FakeSMTPServer:
    """Callable replacing the transport's connect step."""

    def __init__(self):
        self.clients: List[FakeSMTP] = []
        self.connect_errors: List[Optional[BaseException]] = []
        self.send_outcomes: List[Any] = []
        self.sent: List[tuple] = []
        self.noop_reply = (250, b"OK")
        self.connect_calls = 0
        self.send_calls = 0

    def __call__(self) -> FakeSMTP:
        self.connect_calls += 1
        if self.connect_errors:
            error = self.connect_errors.pop(0)
            if error is not None:
                raise error
        client = FakeSMTP(self)
        self.clients.append(client)
        return client


# --- Fixtures --------------------------------------------------------------


@pytest.fixture
def settings() -> GlobalConfig:
    """Configuration with every required setting present and short delays."""
    return GlobalConfig(
        environment="test",
        db_host="db.internal",
        db_port=5432,
        db_user="remlic",
        db_password="secret",
        db_name="licenses",
        db_connection_limit=10,
        db_retry_attempts=3,
        db_retry_delay=2000,
        db_retry_max_delay=30000,
        db_retry_factor=2,
        db_init_retry_attempts=5,
        db_init_retry_delay=2000,
        db_init_retry_max_delay=60000,
        email_host="smtp.example.com",
        email_port=465,
        email_user="mailer",
        email_password="mail-secret",
        email_from_name="Remlic",
        email_from_address="noreply@example.com",
        email_retry_attempts=3,
        email_retry_delay=5000,
        email_retry_max_delay=30000,
        email_init_retry_attempts=5,
        email_init_retry_delay=2000,
        email_init_retry_max_delay=60000,
    )


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def smtp_server() -> FakeSMTPServer:
    return FakeSMTPServer()
