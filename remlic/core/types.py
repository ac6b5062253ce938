"""Core type definitions and enums for Remlic."""

from enum import Enum


class FailureClass(str, Enum):
    """How the retry engine treats a failed attempt."""

    TRANSIENT_RECONNECT = "transient_reconnect"  # Retry after discarding the pool handle
    TRANSIENT = "transient"  # Retry, keep the pool handle
    FATAL = "fatal"  # Surface immediately


class RetryState(str, Enum):
    """Retry operation lifecycle."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"  # Ran out of attempts
    FAILED = "failed"  # Stopped on a fatal error


class PoolState(str, Enum):
    """Resource pool handle lifecycle."""

    ABSENT = "absent"
    CONSTRUCTING = "constructing"
    LIVE = "live"


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"
