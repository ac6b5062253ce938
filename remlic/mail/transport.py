"""SMTP transport that reconnects after the server drops the session."""

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from remlic.core.config import GlobalConfig, get_config
from remlic.core.exceptions import ConfigurationError, MailError
from remlic.resilience.classifier import os_error_code
from remlic.resilience.pool import ResilientPool

logger = logging.getLogger(__name__)

SMTPFactory = Callable[[], Any]

TRANSPORT_ERRORS = (smtplib.SMTPException, OSError, asyncio.TimeoutError)


def normalize_mail_error(error: BaseException) -> MailError:
    """Translate an smtplib or socket exception into a MailError."""
    if isinstance(error, MailError):
        return error

    message = str(error) or type(error).__name__
    if isinstance(error, smtplib.SMTPResponseException):
        detail = error.smtp_error
        if isinstance(detail, bytes):
            detail = detail.decode("utf-8", "replace")
        return MailError(f"{type(error).__name__}: {detail}", code=error.smtp_code)
    if isinstance(error, smtplib.SMTPRecipientsRefused):
        refused = ", ".join(sorted(error.recipients))
        return MailError(f"All recipients were refused: {refused}")
    if isinstance(error, smtplib.SMTPServerDisconnected):
        return MailError(message, code="CONNECTION_CLOSED")
    if isinstance(error, smtplib.SMTPException):
        return MailError(message)
    if isinstance(error, asyncio.TimeoutError):
        return MailError(message, code="ETIMEDOUT")
    if isinstance(error, OSError):
        return MailError(message, code=os_error_code(error))
    return MailError(message)


class MailTransport(ResilientPool[Any]):
    """One authenticated SMTP session, verified with NOOP before use.

    smtplib is blocking, so every call runs in a worker thread and sends are
    serialized on the single session.
    """

    def __init__(
        self,
        settings: Optional[GlobalConfig] = None,
        smtp_factory: Optional[SMTPFactory] = None,
    ):
        """Initialize mail transport.

        Args:
            settings: Configuration, or the global configuration
            smtp_factory: Returns a connected, logged-in SMTP client;
                defaults to connecting with the configured settings
        """
        super().__init__("mail")
        self.settings = settings or get_config()
        self._smtp_factory = smtp_factory or self._connect
        self._send_lock = asyncio.Lock()

    def ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        if not self.settings.email_tls_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        if not s.email_host:
            raise ConfigurationError("Missing required mail setting: EMAIL_HOST")

        timeout = s.email_timeout / 1000.0
        context = self.ssl_context()
        logger.info(
            f"Connecting to mail server {s.email_host}:{s.email_port} "
            f"(secure={s.email_secure})"
        )
        if s.email_secure:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(
                s.email_host, s.email_port, timeout=timeout, context=context
            )
        else:
            smtp = smtplib.SMTP(s.email_host, s.email_port, timeout=timeout)

        try:
            smtp.ehlo()
            encrypted = s.email_secure
            if not encrypted and smtp.has_extn("starttls"):
                smtp.starttls(context=context)
                smtp.ehlo()
                encrypted = True
            if s.email_user and s.email_password:
                if not encrypted:
                    raise ConfigurationError(
                        f"Mail server {s.email_host} does not offer STARTTLS; "
                        "refusing to send credentials in plaintext"
                    )
                smtp.login(s.email_user, s.email_password)
        except BaseException:
            smtp.close()
            raise
        return smtp

    async def _construct(self) -> Any:
        try:
            return await asyncio.to_thread(self._smtp_factory)
        except TRANSPORT_ERRORS as e:
            raise normalize_mail_error(e) from e

    async def _verify(self, handle: Any) -> None:
        try:
            code, reply = await asyncio.to_thread(handle.noop)
            if code != 250:
                raise smtplib.SMTPResponseException(code, reply)
        except TRANSPORT_ERRORS as e:
            raise normalize_mail_error(e) from e

    async def _dispose(self, handle: Any) -> None:
        await asyncio.to_thread(handle.close)

    async def send(
        self, handle: Any, message: EmailMessage, recipients: Sequence[str]
    ) -> Dict[str, Tuple[int, bytes]]:
        """Send one message over ``handle``.

        Returns:
            Recipients the server refused, mapped to its reply

        Raises:
            MailError: If the message could not be delivered
        """
        async with self._send_lock:
            try:
                return await asyncio.to_thread(
                    handle.send_message, message, to_addrs=list(recipients)
                )
            except TRANSPORT_ERRORS as e:
                raise normalize_mail_error(e) from e
