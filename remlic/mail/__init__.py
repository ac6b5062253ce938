"""Outbound email through the connection-resilience layer."""

from .message import build_message, default_sender
from .service import EmailService, get_email_service, send_mail
from .transport import MailTransport, normalize_mail_error

__all__ = [
    "EmailService",
    "MailTransport",
    "build_message",
    "default_sender",
    "normalize_mail_error",
    "get_email_service",
    "send_mail",
]
