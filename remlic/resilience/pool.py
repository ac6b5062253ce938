"""Lazily built, self-replacing handle to an external resource."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from remlic.core.types import PoolState

logger = logging.getLogger(__name__)

H = TypeVar("H")


@dataclass
class PoolStats:
    """Statistics for pool lifecycle monitoring."""

    constructions: int = 0
    invalidations: int = 0
    probe_failures: int = 0
    construction_failures: int = 0

    def record_construction(self) -> None:
        self.constructions += 1

    def record_invalidation(self) -> None:
        self.invalidations += 1

    def record_probe_failure(self) -> None:
        self.probe_failures += 1
        self.construction_failures += 1

    def record_construction_failure(self) -> None:
        self.construction_failures += 1


class ResilientPool(ABC, Generic[H]):
    """Single live handle that is built on demand and rebuilt after failures.

    Subclasses supply how a handle is constructed, probed and disposed of.
    Construction and invalidation share one lock, so concurrent callers that
    find the pool absent wait for a single construction instead of each
    building their own handle.
    """

    def __init__(self, name: str):
        self.name = name
        self.stats = PoolStats()
        self._handle: Optional[H] = None
        self._constructing = False
        self._lock = asyncio.Lock()

    @abstractmethod
    async def _construct(self) -> H:
        """Create a new handle from static configuration."""

    @abstractmethod
    async def _verify(self, handle: H) -> None:
        """Probe a freshly built handle, raising if it is unusable."""

    @abstractmethod
    async def _dispose(self, handle: H) -> None:
        """Release a handle that is no longer live."""

    @property
    def is_live(self) -> bool:
        return self._handle is not None

    @property
    def state(self) -> PoolState:
        if self._handle is not None:
            return PoolState.LIVE
        if self._constructing:
            return PoolState.CONSTRUCTING
        return PoolState.ABSENT

    async def acquire(self) -> H:
        """Return the live handle, building and probing one if absent.

        Raises:
            Whatever construction or the verification probe raised
        """
        handle = self._handle
        if handle is not None:
            return handle

        async with self._lock:
            if self._handle is None:
                self._constructing = True
                try:
                    self._handle = await self._build()
                finally:
                    self._constructing = False
            return self._handle

    async def _build(self) -> H:
        logger.debug(f"Pool '{self.name}': constructing handle")
        try:
            handle = await self._construct()
        except Exception:
            self.stats.record_construction_failure()
            raise

        try:
            await self._verify(handle)
        except Exception as e:
            self.stats.record_probe_failure()
            logger.warning(
                f"Pool '{self.name}': verification probe failed: "
                f"{type(e).__name__}: {e}"
            )
            await self._safe_dispose(handle)
            raise

        self.stats.record_construction()
        logger.info(f"Pool '{self.name}' connected successfully")
        return handle

    async def invalidate(self, handle: Optional[H] = None) -> bool:
        """Discard the live handle so the next acquire() rebuilds it.

        Args:
            handle: Handle the caller saw fail. If another caller has already
                replaced it, the live handle is left alone.

        Returns:
            True if a live handle was discarded
        """
        async with self._lock:
            current = self._handle
            if current is None:
                return False
            if handle is not None and handle is not current:
                logger.debug(
                    f"Pool '{self.name}': ignoring stale invalidation, handle already replaced"
                )
                return False
            self._handle = None
            self.stats.record_invalidation()

        logger.warning(f"Pool '{self.name}' invalidated, will reconnect on next use")
        await self._safe_dispose(current)
        return True

    async def close(self) -> None:
        """Dispose the live handle, if any."""
        async with self._lock:
            current = self._handle
            self._handle = None
        if current is not None:
            await self._shutdown(current)
            logger.info(f"Pool '{self.name}' closed")

    async def _shutdown(self, handle: H) -> None:
        """Release a healthy handle at shutdown, defaults to _dispose."""
        await self._dispose(handle)

    async def _safe_dispose(self, handle: H) -> None:
        # Handle is already out of service, disposal errors are only logged
        try:
            await self._dispose(handle)
        except Exception as e:
            logger.warning(
                f"Pool '{self.name}': error while disposing handle: "
                f"{type(e).__name__}: {e}"
            )
