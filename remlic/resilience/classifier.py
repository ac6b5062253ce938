"""Failure classification for database and mail errors.

Database codes are PostgreSQL SQLSTATEs or the symbolic OS codes produced by
``remlic.db.pool.normalize_error``; mail codes are SMTP reply codes or the same
symbolic OS codes.
"""

import asyncio
import errno
import smtplib
import socket
import ssl
from typing import Optional

from remlic.core.exceptions import (
    ConfigurationError,
    ConnectorError,
    ErrorCode,
    ValidationError,
)
from remlic.core.types import FailureClass

# Symbolic codes for sockets that broke, timed out or never connected
CONNECTION_CODES = frozenset(
    {
        "ECONNREFUSED",
        "ECONNRESET",
        "ECONNABORTED",
        "ETIMEDOUT",
        "EPIPE",
        "EHOSTUNREACH",
        "ENETUNREACH",
        "ENOTFOUND",
        "CONNECTION_CLOSED",
    }
)

# SQLSTATEs meaning the server dropped or refused the session
DB_CONNECTION_SQLSTATES = frozenset({"57P01", "57P02", "57P03"})
DB_CONNECTION_SQLSTATE_CLASSES = ("08",)

# SQLSTATE classes no retry can fix:
# 22 data exception, 23 constraint violation, 28 invalid authorization,
# 42 syntax error or access rule violation
DB_FATAL_SQLSTATE_CLASSES = ("22", "23", "28", "42")
DB_FATAL_SQLSTATES = frozenset({"3D000"})

_OS_ERROR_CODES = {
    ConnectionRefusedError: "ECONNREFUSED",
    ConnectionResetError: "ECONNRESET",
    ConnectionAbortedError: "ECONNABORTED",
    BrokenPipeError: "EPIPE",
}


def os_error_code(error: OSError) -> str:
    """Symbolic code for a socket-level failure, e.g. ``ECONNREFUSED``."""
    if isinstance(error, socket.gaierror):
        return "ENOTFOUND"
    if isinstance(error, socket.timeout):
        return "ETIMEDOUT"
    if error.errno is not None and error.errno in errno.errorcode:
        return errno.errorcode[error.errno]
    for error_type, code in _OS_ERROR_CODES.items():
        if isinstance(error, error_type):
            return code
    return "CONNECTION_CLOSED"


def _code(error: BaseException) -> Optional[ErrorCode]:
    if isinstance(error, ConnectorError):
        return error.code
    return None


def classify_database_error(error: BaseException) -> FailureClass:
    """Decide how the retry engine treats a failed database attempt."""
    if isinstance(error, (ConfigurationError, ValidationError)):
        return FailureClass.FATAL
    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return FailureClass.TRANSIENT_RECONNECT

    code = _code(error)
    if code is None:
        return FailureClass.TRANSIENT

    code = str(code).upper()
    if code in CONNECTION_CODES or code in DB_CONNECTION_SQLSTATES:
        return FailureClass.TRANSIENT_RECONNECT
    if len(code) == 5 and code.startswith(DB_CONNECTION_SQLSTATE_CLASSES):
        return FailureClass.TRANSIENT_RECONNECT
    if code in DB_FATAL_SQLSTATES:
        return FailureClass.FATAL
    if len(code) == 5 and code.startswith(DB_FATAL_SQLSTATE_CLASSES):
        return FailureClass.FATAL
    return FailureClass.TRANSIENT


def classify_mail_error(error: BaseException) -> FailureClass:
    """Decide how the retry engine treats a failed mail attempt.

    Authentication, certificate and permanent (5xx) rejections are fatal;
    broken connections force a reconnect; temporary (4xx) replies and anything
    unrecognised are retried on the same connection.
    """
    if isinstance(error, (ConfigurationError, ValidationError)):
        return FailureClass.FATAL

    cause = error.__cause__ if isinstance(error, ConnectorError) else error
    if cause is None:
        cause = error

    if isinstance(
        cause,
        (
            smtplib.SMTPAuthenticationError,
            smtplib.SMTPNotSupportedError,
            smtplib.SMTPRecipientsRefused,
            smtplib.SMTPSenderRefused,
            ssl.SSLCertVerificationError,
        ),
    ):
        return FailureClass.FATAL
    if isinstance(cause, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError)):
        return FailureClass.TRANSIENT_RECONNECT
    if isinstance(cause, smtplib.SMTPResponseException):
        if 500 <= cause.smtp_code < 600:
            return FailureClass.FATAL
        return FailureClass.TRANSIENT
    if isinstance(cause, smtplib.SMTPException):
        return FailureClass.TRANSIENT
    if isinstance(cause, (OSError, asyncio.TimeoutError)):
        return FailureClass.TRANSIENT_RECONNECT

    code = _code(error)
    if code is not None and str(code).upper() in CONNECTION_CODES:
        return FailureClass.TRANSIENT_RECONNECT
    if isinstance(code, int) and 500 <= code < 600:
        return FailureClass.FATAL
    return FailureClass.TRANSIENT
