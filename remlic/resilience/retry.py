"""Retry strategy with exponential backoff.

A retried call moves through ``IDLE -> ATTEMPTING -> (SUCCEEDED |
BACKING_OFF -> ATTEMPTING | EXHAUSTED | FAILED)``. Each failure is handed to a
classifier which decides whether to retry, whether the pool handle behind the
attempt must be discarded first, or whether to give up immediately.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

from remlic.core.exceptions import ConfigurationError
from remlic.core.types import FailureClass, RetryState

logger = logging.getLogger(__name__)

T = TypeVar("T")

Classifier = Callable[[BaseException], FailureClass]
InvalidateHook = Callable[[BaseException], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


class RetryableError(Exception):
    """Error that can be retried."""

    pass


@dataclass
class RetryConfig:
    """Configuration for retry behavior. Timeouts are in seconds."""

    retries: int = 3
    """Additional attempts after the first one."""

    factor: float = 2.0
    """Backoff multiplier between consecutive delays."""

    min_timeout: float = 1.0
    """Delay after the first failed attempt."""

    max_timeout: float = 60.0
    """Upper bound for any single delay."""

    retryable_exceptions: tuple[type[Exception], ...] = (
        RetryableError,
        asyncio.TimeoutError,
        ConnectionError,
    )
    """Exception types the default classifier treats as transient."""

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ConfigurationError(f"retries must be >= 0, got {self.retries}")
        if self.factor < 1:
            raise ConfigurationError(f"factor must be >= 1, got {self.factor}")
        if self.min_timeout < 0 or self.max_timeout < self.min_timeout:
            raise ConfigurationError(
                f"invalid delay bounds: min_timeout={self.min_timeout}, "
                f"max_timeout={self.max_timeout}"
            )

    @classmethod
    def from_milliseconds(
        cls,
        retries: int,
        min_timeout_ms: float,
        max_timeout_ms: float,
        factor: float = 2.0,
    ) -> "RetryConfig":
        """Build a policy from millisecond settings."""
        return cls(
            retries=retries,
            factor=factor,
            min_timeout=min_timeout_ms / 1000.0,
            max_timeout=max_timeout_ms / 1000.0,
        )

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt ``attempt`` (1-indexed)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return min(self.max_timeout, self.min_timeout * self.factor ** (attempt - 1))

    def schedule(self) -> List[float]:
        """Every delay a call exhausting this policy would wait."""
        return [self.delay_for(n) for n in range(1, self.max_attempts)]


def classify_by_type(config: RetryConfig) -> Classifier:
    """Classifier treating ``config.retryable_exceptions`` as transient."""

    def classify(error: BaseException) -> FailureClass:
        if isinstance(error, config.retryable_exceptions):
            return FailureClass.TRANSIENT
        return FailureClass.FATAL

    return classify


class RetryOperation:
    """Single retried call with explicit attempt state.

    Example:
        ```python
        operation = RetryOperation(
            RetryConfig(retries=3, min_timeout=2.0),
            classifier=classify_database_error,
            on_invalidate=lambda error: pool.invalidate(),
            name="db.query",
        )
        rows = await operation.run(run_statement, sql, params)
        ```
    """

    def __init__(
        self,
        config: RetryConfig,
        classifier: Optional[Classifier] = None,
        on_invalidate: Optional[InvalidateHook] = None,
        sleep: Optional[Sleep] = None,
        name: str = "operation",
    ):
        """Initialize retry operation.

        Args:
            config: Retry policy
            classifier: Maps an error to a FailureClass, defaults to classify_by_type
            on_invalidate: Awaited with the error on TRANSIENT_RECONNECT failures
            sleep: Awaitable delay function, defaults to asyncio.sleep
            name: Label used in log messages
        """
        self.config = config
        self.classifier = classifier or classify_by_type(config)
        self.on_invalidate = on_invalidate
        self.name = name
        self._sleep = sleep or asyncio.sleep
        self.state = RetryState.IDLE
        self.current_attempt = 0
        self.delays: List[float] = []
        self.last_error: Optional[BaseException] = None

    @property
    def attempts_left(self) -> int:
        return max(0, self.config.max_attempts - self.current_attempt)

    async def run(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute function until it succeeds, fails fatally or runs out of attempts.

        Args:
            func: Async function to execute
            *args: Positional arguments for function
            **kwargs: Keyword arguments for function

        Returns:
            Result from function

        Raises:
            The last exception, unchanged, on a fatal failure or exhaustion
        """
        if self.state != RetryState.IDLE:
            raise RuntimeError(f"Retry operation '{self.name}' has already run")

        while True:
            self.current_attempt += 1
            self.state = RetryState.ATTEMPTING
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                failure = self.classifier(e)

                if failure == FailureClass.TRANSIENT_RECONNECT and self.on_invalidate:
                    await self.on_invalidate(e)

                if failure == FailureClass.FATAL:
                    self.state = RetryState.FAILED
                    logger.error(
                        f"{self.name} failed on attempt {self.current_attempt} "
                        f"(not retryable): {type(e).__name__}: {e}"
                    )
                    raise

                if self.attempts_left == 0:
                    self.state = RetryState.EXHAUSTED
                    logger.error(
                        f"{self.name} failed after {self.current_attempt} attempts: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise

                delay = self.config.delay_for(self.current_attempt)
                logger.warning(
                    f"{self.name} attempt {self.current_attempt}/{self.config.max_attempts} "
                    f"failed ({failure.value}): {type(e).__name__}: {e}. "
                    f"Retrying in {delay:.2f}s"
                )
                self.state = RetryState.BACKING_OFF
                self.delays.append(delay)
                await self._sleep(delay)
            else:
                self.state = RetryState.SUCCEEDED
                if self.current_attempt > 1:
                    logger.info(
                        f"{self.name} succeeded on attempt {self.current_attempt}"
                    )
                return result


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    config: RetryConfig,
    *args: Any,
    classifier: Optional[Classifier] = None,
    on_invalidate: Optional[InvalidateHook] = None,
    sleep: Optional[Sleep] = None,
    **kwargs: Any,
) -> T:
    """Execute function with exponential backoff retry.

    Args:
        func: Async function to execute
        config: Retry configuration
        *args: Positional arguments for function
        classifier: Failure classifier, defaults to classify_by_type(config)
        on_invalidate: Awaited on failures that make the pool handle unusable
        sleep: Awaitable delay function, defaults to asyncio.sleep
        **kwargs: Keyword arguments for function

    Returns:
        Result from function

    Raises:
        Last exception if all retries exhausted or the failure is fatal
    """
    operation = RetryOperation(
        config,
        classifier=classifier,
        on_invalidate=on_invalidate,
        sleep=sleep,
        name=getattr(func, "__name__", "operation"),
    )
    return await operation.run(func, *args, **kwargs)
