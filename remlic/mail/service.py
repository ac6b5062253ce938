"""Email delivery facade with retries on the SMTP transport."""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

import pydantic

from remlic.core.config import GlobalConfig, get_config
from remlic.core.exceptions import ValidationError
from remlic.core.models import Attachment, MailPayload, Recipients, SendResult
from remlic.resilience.classifier import classify_mail_error
from remlic.resilience.retry import RetryConfig, RetryOperation, Sleep

from .message import build_message
from .transport import MailTransport, SMTPFactory

logger = logging.getLogger(__name__)


def send_retry_config(settings: GlobalConfig) -> RetryConfig:
    """Retry policy for sending one message."""
    return RetryConfig.from_milliseconds(
        retries=settings.email_retry_attempts,
        min_timeout_ms=settings.email_retry_delay,
        max_timeout_ms=settings.email_retry_max_delay,
    )


def init_retry_config(settings: GlobalConfig) -> RetryConfig:
    """Retry policy for connecting and verifying the transport."""
    return RetryConfig.from_milliseconds(
        retries=settings.email_init_retry_attempts,
        min_timeout_ms=settings.email_init_retry_delay,
        max_timeout_ms=settings.email_init_retry_max_delay,
    )


class EmailService:
    """Send mail through a self-healing SMTP transport."""

    def __init__(
        self,
        settings: Optional[GlobalConfig] = None,
        transport: Optional[MailTransport] = None,
        smtp_factory: Optional[SMTPFactory] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.settings = settings or get_config()
        self.transport = transport or MailTransport(self.settings, smtp_factory=smtp_factory)
        self.retry_config = send_retry_config(self.settings)
        self.init_retry_config = init_retry_config(self.settings)
        self._sleep = sleep

    async def initialize(self) -> None:
        """Connect and verify the transport, retrying with the startup policy.

        Raises:
            MailError: If the server stays unreachable or rejects the login
            ConfigurationError: If mail settings are missing
        """
        operation = RetryOperation(
            self.init_retry_config,
            classifier=classify_mail_error,
            on_invalidate=lambda error: self.transport.invalidate(),
            sleep=self._sleep,
            name="email.initialize",
        )
        await operation.run(self.transport.acquire)
        logger.info("Email service initialized successfully")

    def create_mail_options(
        self,
        to: Optional[Recipients] = None,
        subject: Optional[str] = None,
        text: Optional[str] = None,
        html: Optional[str] = None,
        attachments: Optional[Sequence[Attachment]] = None,
        cc: Optional[Recipients] = None,
        bcc: Optional[Recipients] = None,
        reply_to: Optional[str] = None,
        template: Optional[str] = None,
    ) -> MailPayload:
        """Build a validated payload; ``template`` replaces ``html``.

        Raises:
            ValidationError: If required fields are missing
        """
        payload = MailPayload(
            to=to,
            subject=subject,
            text=text,
            html=html,
            template=template,
            attachments=list(attachments or []),
            cc=cc,
            bcc=bcc,
            reply_to=reply_to,
        )
        return payload.validate_required()

    async def send(self, payload: Union[MailPayload, Mapping[str, Any]]) -> SendResult:
        """Deliver one message.

        Args:
            payload: MailPayload or a mapping with the same fields

        Returns:
            SendResult with the Message-ID and accepted/rejected recipients

        Raises:
            ValidationError: Before any network traffic, for incomplete payloads
            MailError: Terminal delivery failure after retries
        """
        payload = self._coerce(payload).validate_required()
        message = build_message(payload, self.settings)
        recipients = payload.recipients()

        if not self.transport.is_live:
            await self.initialize()

        used: List[Any] = []

        async def attempt() -> dict:
            handle = await self.transport.acquire()
            used.append(handle)
            return await self.transport.send(handle, message, recipients)

        async def invalidate(error: BaseException) -> None:
            await self.transport.invalidate(used[-1] if used else None)

        operation = RetryOperation(
            self.retry_config,
            classifier=classify_mail_error,
            on_invalidate=invalidate,
            sleep=self._sleep,
            name="email.send",
        )
        refused = await operation.run(attempt)

        result = SendResult(
            message_id=str(message["Message-ID"]),
            accepted=[r for r in recipients if r not in refused],
            rejected=list(refused),
        )
        logger.info(f"Email sent successfully: {result.message_id}")
        return result

    send_mail = send

    @staticmethod
    def _coerce(payload: Union[MailPayload, Mapping[str, Any]]) -> MailPayload:
        if isinstance(payload, MailPayload):
            return payload
        try:
            return MailPayload.model_validate(dict(payload))
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid email payload: {e}") from e

    async def close(self) -> None:
        await self.transport.close()


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the process-wide email service."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


async def send_mail(payload: Union[MailPayload, Mapping[str, Any]]) -> SendResult:
    """Deliver one message with the process-wide email service."""
    return await get_email_service().send(payload)
