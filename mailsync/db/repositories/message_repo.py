"""Message repository: idempotent insert keyed by Message-ID, thread lookups, chains."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mailsync.db.models.thread import EmailMessage
from mailsync.utils.email_parser import format_references
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.db.message_repo")

# Thread order: Date header, then mailbox UID (outbound rows last), then arrival
CHRONOLOGICAL = (
    EmailMessage.created_at.asc(),
    EmailMessage.uid.asc().nulls_last(),
    EmailMessage.ingested_at.asc(),
    EmailMessage.id.asc(),
)


def message_exists(session: Session, message_id: str) -> bool:
    q = select(EmailMessage.id).where(EmailMessage.message_id == message_id).limit(1)
    return session.scalars(q).first() is not None


def find_thread_id_by_message_id(session: Session, message_id: str) -> Optional[str]:
    """Thread owning the stored message with this Message-ID, or None."""
    if not message_id:
        return None
    q = select(EmailMessage.thread_id).where(EmailMessage.message_id == message_id).limit(1)
    return session.scalars(q).first()


def insert_message(
    session: Session,
    thread_id: str,
    message_id: str,
    created_at: datetime,
    in_reply_to: Optional[str] = None,
    references: Optional[list[str]] = None,
    from_email: str = "",
    from_name: Optional[str] = None,
    to_email: str = "",
    subject: Optional[str] = None,
    body_text: Optional[str] = None,
    body_html: Optional[str] = None,
    from_operator: bool = False,
    uid: Optional[int] = None,
    attachments: Optional[list[dict[str, Any]]] = None,
) -> Optional[EmailMessage]:
    """Insert a message. Returns None without writing if the Message-ID is already stored."""
    if message_exists(session, message_id):
        logger.debug("message_repo.insert.duplicate", message_id=message_id)
        return None
    row = EmailMessage(
        thread_id=thread_id,
        message_id=message_id,
        in_reply_to=in_reply_to,
        references_header=format_references(references or []),
        from_email=(from_email or "").lower(),
        from_name=from_name,
        to_email=(to_email or "").lower(),
        subject=subject,
        body_text=body_text,
        body_html=body_html,
        from_operator=from_operator,
        created_at=created_at,
        uid=uid,
        attachments=attachments or [],
    )
    session.add(row)
    # A concurrent run inserting the same Message-ID surfaces here as IntegrityError
    session.flush()
    return row


def list_message_ids(session: Session, thread_id: str) -> list[str]:
    """Message-IDs of a thread, oldest first."""
    q = (
        select(EmailMessage.message_id)
        .where(EmailMessage.thread_id == thread_id)
        .order_by(*CHRONOLOGICAL)
    )
    return list(session.scalars(q).all())


def list_messages(session: Session, thread_id: str) -> list[EmailMessage]:
    q = (
        select(EmailMessage)
        .where(EmailMessage.thread_id == thread_id)
        .order_by(*CHRONOLOGICAL)
    )
    return list(session.scalars(q).all())


def get_by_message_id(session: Session, message_id: str) -> Optional[EmailMessage]:
    return session.scalars(select(EmailMessage).where(EmailMessage.message_id == message_id)).first()


def count_messages(session: Session, thread_id: str) -> int:
    q = select(func.count(EmailMessage.id)).where(EmailMessage.thread_id == thread_id)
    return session.scalar(q) or 0
