"""Core infrastructure for Remlic."""

from .config import GlobalConfig, config, get_config, reload_config
from .exceptions import (
    ConfigurationError,
    ConnectorError,
    DatabaseError,
    MailError,
    RemlicError,
    StartupError,
    ValidationError,
)
from .logging_setup import setup_logging
from .models import AffectedRowsResult, Attachment, MailPayload, SendResult
from .types import Environment, FailureClass, PoolState, RetryState

__all__ = [
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
