"""Resilience patterns for Remlic resources.

This module provides the connection-resilience layer shared by the database
and mail paths:
- Lazily built resource pools that rebuild themselves after failures
- Retry with exponential backoff
- Failure classification for database and SMTP errors
"""

from .classifier import classify_database_error, classify_mail_error, os_error_code
from .pool import PoolStats, ResilientPool
from .retry import (
    RetryableError,
    RetryConfig,
    RetryOperation,
    classify_by_type,
    retry_with_backoff,
)

__all__ = [
    "ResilientPool",
    "PoolStats",
    "RetryConfig",
    "RetryOperation",
    "RetryableError",
    "retry_with_backoff",
    "classify_by_type",
    "classify_database_error",
    "classify_mail_error",
    "os_error_code",
]
