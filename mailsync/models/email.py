"""Parsed message, attachment and outbound request models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RawAttachment(BaseModel):
    """Attachment blob extracted from a message, not yet uploaded."""

    filename: str = "attachment"
    content_type: str = "application/octet-stream"
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)


class AttachmentRef(BaseModel):
    """Retrievable reference to an uploaded attachment (stored on the message row)."""

    name: str
    content_type: str
    size: int
    url: str


class ParsedMessage(BaseModel):
    """Structured fields of one protocol-level email."""

    message_id: str
    in_reply_to: Optional[str] = None
    references: list[str] = []  # oldest first
    from_email: str = ""
    from_name: Optional[str] = None
    to_email: str = ""
    to_name: Optional[str] = None
    subject: str
    body_text: Optional[str] = None
    body_html: Optional[str] = None
    from_operator: bool = False
    counterparty_email: str = ""
    counterparty_name: str = ""
    date: datetime
    uid: Optional[int] = None
    attachments: list[RawAttachment] = Field(default_factory=list, repr=False)


class ReplyRequest(BaseModel):
    """Outbound message content supplied by the caller."""

    to: str
    to_name: Optional[str] = None
    subject: str
    body_text: str = ""
    body_html: str = ""
