"""Database access through the connection-resilience layer."""

from .database import (
    Database,
    QueryResult,
    close_database,
    get_database,
    initialize_database,
    query,
)
from .pool import DatabasePool, normalize_error

__all__ = [
    "Database",
    "DatabasePool",
    "QueryResult",
    "normalize_error",
    "get_database",
    "initialize_database",
    "query",
    "close_database",
]
