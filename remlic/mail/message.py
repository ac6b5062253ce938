"""Compose normalized outbound messages."""

from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Optional

from remlic.core.config import GlobalConfig
from remlic.core.exceptions import ConfigurationError
from remlic.core.models import MailPayload, Recipients

MAILER_NAME = "Remlic-Mailer"


def default_sender(settings: GlobalConfig) -> str:
    """``"Name" <address>`` built from EMAIL_FROM_NAME / EMAIL_FROM_ADDRESS."""
    if not settings.email_from_address:
        raise ConfigurationError("Missing required mail setting: EMAIL_FROM_ADDRESS")
    return formataddr((settings.email_from_name, settings.email_from_address))


def _address_list(value: Optional[Recipients]) -> str:
    if isinstance(value, str):
        return value
    return ", ".join(value or [])


def tracking_headers(settings: GlobalConfig) -> dict[str, str]:
    """Headers added to every message; they win over caller-supplied ones."""
    headers = {
        "X-Priority": "3",
        "X-MSMail-Priority": "Normal",
        "X-Mailer": MAILER_NAME,
        "Message-ID": make_msgid(domain=settings.email_host or "localhost"),
    }
    if settings.email_from_address:
        headers["X-Sender"] = settings.email_from_address
    return headers


def build_message(payload: MailPayload, settings: GlobalConfig) -> EmailMessage:
    """Build the wire message for a validated payload.

    Bcc recipients are left out of the headers; they only travel in the
    SMTP envelope.
    """
    message = EmailMessage()
    message["From"] = payload.from_address or default_sender(settings)
    message["To"] = _address_list(payload.to)
    if payload.cc:
        message["Cc"] = _address_list(payload.cc)
    if payload.reply_to:
        message["Reply-To"] = payload.reply_to
    message["Subject"] = payload.subject or ""
    message["Date"] = formatdate(localtime=True)

    for name, value in payload.headers.items():
        del message[name]
        message[name] = value
    for name, value in tracking_headers(settings).items():
        del message[name]
        message[name] = value

    html = payload.html_body
    if payload.text:
        message.set_content(payload.text)
        if html:
            message.add_alternative(html, subtype="html")
    elif html:
        message.set_content(html, subtype="html")

    for attachment in payload.attachments:
        maintype, _, subtype = attachment.content_type.partition("/")
        message.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )

    return message
