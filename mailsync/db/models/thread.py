"""ORM models for conversation threads and their messages."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mailsync.db.base import Base, TimestampMixin, UTCDateTime, utcnow
from mailsync.utils.email_parser import split_references

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"
THREAD_STATUSES = (STATUS_OPEN, STATUS_CLOSED)


def _new_id() -> str:
    return str(uuid.uuid4())


class EmailThread(Base, TimestampMixin):
    """One conversation with one counterparty."""

    __tablename__ = "email_threads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    root_message_id: Mapped[Optional[str]] = mapped_column(String(998), nullable=True)
    subject: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_OPEN, index=True)
    customer_name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    customer_email: Mapped[str] = mapped_column(String(512), nullable=False, default="", index=True)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True, index=True)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class EmailMessage(Base):
    """One protocol-level email. Immutable once inserted; message_id is the dedup key."""

    __tablename__ = "email_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    thread_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("email_threads.id"), nullable=False, index=True
    )
    message_id: Mapped[str] = mapped_column(String(998), unique=True, nullable=False, index=True)
    in_reply_to: Mapped[Optional[str]] = mapped_column(String(998), nullable=True)
    # Space-delimited on disk; use .references for the ordered list
    references_header: Mapped[Optional[str]] = mapped_column("references", Text, nullable=True)
    from_email: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    from_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    to_email: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    body_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    body_html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    from_operator: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    uid: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Local insert time; breaks ties between equal one-second Date headers
    ingested_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    attachments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    @property
    def references(self) -> list[str]:
        return split_references(self.references_header)
