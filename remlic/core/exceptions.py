"""Custom exceptions for Remlic."""

from typing import Optional, Union

ErrorCode = Union[str, int]


class RemlicError(Exception):
    """Base exception for all Remlic errors."""

    pass


class ConfigurationError(RemlicError):
    """Raised when required settings are missing or invalid."""

    pass


class ValidationError(RemlicError):
    """Raised when an operation request fails validation."""

    pass


class StartupError(RemlicError):
    """Raised when the process cannot finish its startup sequence."""

    pass


class ConnectorError(RemlicError):
    """Raised when an external resource operation fails.

    Carries the origin-specific error code so callers and the failure
    classifier can inspect it without unwrapping the driver exception.
    """

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        self.message = message
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        """Return the ``{code, message}`` shape handed back to callers."""
        return {"code": self.code, "message": self.message}


class DatabaseError(ConnectorError):
    """Raised when a database statement or connection fails."""

    pass


class MailError(ConnectorError):
    """Raised when the mail transport fails to connect or deliver."""

    pass
