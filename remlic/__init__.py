"""Remlic - connection resilience for the license-records backend."""

from .core import (
    AffectedRowsResult,
    Attachment,
    # Exceptions
    ConfigurationError,
    ConnectorError,
    DatabaseError,
    Environment,
    # Types
    FailureClass,
    # Config
    GlobalConfig,
    MailError,
    # Models
    MailPayload,
    PoolState,
    RemlicError,
    RetryState,
    SendResult,
    StartupError,
    ValidationError,
    config,
    get_config,
    reload_config,
    setup_logging,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Types
    "Environment",
    "FailureClass",
    "PoolState",
    "RetryState",
    # Exceptions
    "RemlicError",
    "ConfigurationError",
    "ValidationError",
    "StartupError",
    "ConnectorError",
    "DatabaseError",
    "MailError",
    # Models
    "Attachment",
    "MailPayload",
    "SendResult",
    "AffectedRowsResult",
    # Config
    "GlobalConfig",
    "config",
    "get_config",
    "reload_config",
    "setup_logging",
]
