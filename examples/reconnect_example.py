"""Example demonstrating reconnect-on-failure retries."""

import asyncio

from remlic.core.exceptions import DatabaseError
from remlic.resilience import (
    ResilientPool,
    RetryConfig,
    RetryOperation,
    classify_database_error,
)


class DemoPool(ResilientPool[int]):
    """Pool whose handles are just generation numbers."""

    def __init__(self):
        super().__init__("demo")
        self.generation = 0

    async def _construct(self) -> int:
        self.generation += 1
        print(f"  Building connection #{self.generation}")
        return self.generation

    async def _verify(self, handle: int) -> None:
        return None

    async def _dispose(self, handle: int) -> None:
        print(f"  Discarding connection #{handle}")


async def main():
    print("🔄 Reconnecting retries\n")

    pool = DemoPool()
    calls = [0]

    async def flaky_query():
        handle = await pool.acquire()
        calls[0] += 1
        print(f"  Attempt {calls[0]} on connection #{handle}...", end=" ")
        if calls[0] < 3:
            print("❌ Connection refused")
            raise DatabaseError("Connection refused", code="ECONNREFUSED")
        print("✅ Success!")
        return [{"n": 1}]

    config = RetryConfig(retries=3, factor=2.0, min_timeout=0.2, max_timeout=1.0)
    print(f"Backoff schedule: {config.schedule()}")

    operation = RetryOperation(
        config,
        classifier=classify_database_error,
        on_invalidate=lambda e: pool.invalidate(),
        name="demo query",
    )
    rows = await operation.run(flaky_query)

    print(f"\n  Result: {rows}")
    print(f"  Waited: {operation.delays}")
    print(f"  Rebuilds: {pool.stats.invalidations}")

    # Constraint violations are never retried
    print("\nFatal errors stop immediately")

    async def duplicate_insert():
        raise DatabaseError("duplicate key value violates unique constraint", code="23505")

    try:
        await RetryOperation(config, classifier=classify_database_error).run(duplicate_insert)
    except DatabaseError as e:
        print(f"  ❌ {e}")

    await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
