"""Email dispatch models.

An :class:`EmailDispatch` is built once per dispatch attempt and never
persisted.  :meth:`EmailDispatch.to_payload` yields the wire format
expected by the Postmark ``/email`` endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Attachment:
    """A base64-encoded file attached to an email."""

    name: str
    base64_content: str
    content_type: str


@dataclass(frozen=True)
class EmailDispatch:
    """A single outbound email carrying the calendar document.

    Attributes:
        from_address: Sender address.
        to_address: Recipient address.
        subject: Subject line.
        text_body: Plain-text body.
        attachment: The calendar document attachment.
    """

    from_address: str
    to_address: str
    subject: str
    text_body: str
    attachment: Attachment

    def to_payload(self) -> dict[str, Any]:
        return {
            "From": self.from_address,
            "To": self.to_address,
            "Subject": self.subject,
            "TextBody": self.text_body,
            "Attachments": [
                {
                    "Name": self.attachment.name,
                    "Content": self.attachment.base64_content,
                    "ContentType": self.attachment.content_type,
                }
            ],
        }


@dataclass(frozen=True)
class DispatchResult:
    """Outcome reported by the email-delivery collaborator.

    Attributes:
        success: Whether the message was accepted.
        message: Human-readable status, reported verbatim.
        message_id: Provider message identifier, when accepted.
        error_code: Provider error code, when rejected.
    """

    success: bool
    message: str
    message_id: str | None = None
    error_code: int | None = None
