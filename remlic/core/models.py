"""Core Pydantic data models for Remlic."""

import re
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ValidationError

Recipients = Union[str, List[str]]

_STATUS_COUNT = re.compile(r"(\d+)\s*$")


class Attachment(BaseModel):
    """File attached to an outbound message."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="File name shown to the recipient")
    content: bytes = Field(..., description="Raw attachment bytes")
    content_type: str = Field(
        default="application/octet-stream", description="MIME type"
    )


class MailPayload(BaseModel):
    """Outbound message as requested by a caller."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    to: Optional[Recipients] = Field(default=None, description="Recipient(s)")
    subject: Optional[str] = Field(default=None, description="Subject line")
    text: Optional[str] = Field(default=None, description="Plain-text body")
    html: Optional[str] = Field(default=None, description="HTML body")
    template: Optional[str] = Field(
        default=None, description="Pre-rendered HTML that overrides html"
    )
    cc: Optional[Recipients] = Field(default=None, description="Carbon copy")
    bcc: Optional[Recipients] = Field(default=None, description="Blind carbon copy")
    reply_to: Optional[str] = Field(
        default=None, alias="replyTo", description="Reply-To address"
    )
    from_address: Optional[str] = Field(
        default=None, alias="from", description="Sender, defaults to configured sender"
    )
    attachments: List[Attachment] = Field(
        default_factory=list, description="File attachments"
    )
    headers: Dict[str, str] = Field(
        default_factory=dict, description="Extra message headers"
    )

    @property
    def html_body(self) -> Optional[str]:
        """HTML body after applying the template override."""
        return self.template or self.html

    def missing_fields(self) -> List[str]:
        """Names of required fields that are empty."""
        return [name for name in ("to", "subject") if not getattr(self, name)]

    def validate_required(self) -> "MailPayload":
        """Check required fields before any transport work.

        Raises:
            ValidationError: If to/subject are missing or there is no body
        """
        missing = self.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing required email fields: {', '.join(missing)}"
            )
        if not self.text and not self.html_body:
            raise ValidationError("Either text or html content must be provided")
        return self

    def recipients(self) -> List[str]:
        """Every envelope recipient (to, cc and bcc)."""
        result: List[str] = []
        for value in (self.to, self.cc, self.bcc):
            if not value:
                continue
            result.extend([value] if isinstance(value, str) else value)
        return result


class SendResult(BaseModel):
    """Outcome of a delivered message."""

    model_config = ConfigDict(frozen=True)

    message_id: str = Field(..., description="Message-ID header of the sent message")
    accepted: List[str] = Field(
        default_factory=list, description="Recipients the server accepted"
    )
    rejected: List[str] = Field(
        default_factory=list, description="Recipients the server refused"
    )


class AffectedRowsResult(BaseModel):
    """Result of a statement that returns no rows."""

    model_config = ConfigDict(frozen=True)

    command: str = Field(..., description="Command tag, e.g. INSERT or UPDATE")
    affected_rows: int = Field(default=0, ge=0, description="Rows touched")

    @classmethod
    def from_status(cls, status: Optional[str]) -> "AffectedRowsResult":
        """Parse a server command tag such as ``INSERT 0 1`` or ``UPDATE 3``."""
        status = (status or "").strip()
        if not status:
            return cls(command="", affected_rows=0)
        command = status.split()[0].upper()
        match = _STATUS_COUNT.search(status)
        affected = int(match.group(1)) if match else 0
        return cls(command=command, affected_rows=affected)
