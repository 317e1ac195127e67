"""Thread repository: create, look up by subject window, recount stats, status changes."""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from mailsync.db.base import utcnow
from mailsync.db.models.thread import (
    STATUS_OPEN,
    THREAD_STATUSES,
    EmailMessage,
    EmailThread,
)


def create_thread(
    session: Session,
    subject: str,
    customer_name: str,
    customer_email: str,
    started_at: datetime,
    root_message_id: Optional[str] = None,
) -> EmailThread:
    """Insert a new open thread for the first message of a conversation (message_count=1)."""
    thread = EmailThread(
        root_message_id=root_message_id,
        subject=subject,
        status=STATUS_OPEN,
        customer_name=customer_name,
        customer_email=(customer_email or "").lower(),
        last_message_at=started_at,
        message_count=1,
        created_at=started_at,
        updated_at=started_at,
    )
    session.add(thread)
    session.flush()
    return thread


def get_thread(session: Session, thread_id: str) -> Optional[EmailThread]:
    return session.get(EmailThread, thread_id)


def find_recent_thread_by_subject(session: Session, subject: str, since: datetime) -> Optional[str]:
    """Id of the thread with exactly this subject and the latest last_message_at >= since."""
    q = (
        select(EmailThread.id)
        .where(EmailThread.subject == subject)
        .where(EmailThread.last_message_at >= since)
        .order_by(EmailThread.last_message_at.desc())
        .limit(1)
    )
    return session.scalars(q).first()


def refresh_thread_stats(session: Session, thread_id: str, reopen: bool = False) -> EmailThread:
    """Recount messages and recompute last_message_at from the stored messages.

    reopen=True forces status back to open (counterparty-authored message);
    otherwise the status is left as it is.
    """
    session.flush()
    thread = session.get(EmailThread, thread_id)
    if thread is None:
        raise LookupError(f"Thread not found: {thread_id}")
    count, latest = session.execute(
        select(func.count(EmailMessage.id), func.max(EmailMessage.created_at)).where(
            EmailMessage.thread_id == thread_id
        )
    ).one()
    thread.message_count = count or 1
    if latest is not None:
        thread.last_message_at = latest
    if reopen:
        thread.status = STATUS_OPEN
    thread.updated_at = utcnow()
    session.flush()
    return thread


def set_thread_status(session: Session, thread_id: str, status: str) -> Optional[EmailThread]:
    """Set open/closed. Returns None if the thread does not exist."""
    if status not in THREAD_STATUSES:
        raise ValueError(f"Invalid thread status: {status!r}")
    thread = session.get(EmailThread, thread_id)
    if thread is None:
        return None
    thread.status = status
    thread.updated_at = utcnow()
    session.flush()
    return thread


def list_threads(
    session: Session,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[EmailThread]:
    """Threads ordered by most recent activity first."""
    q = select(EmailThread)
    if status is not None:
        q = q.where(EmailThread.status == status)
    q = q.order_by(EmailThread.last_message_at.desc()).limit(limit).offset(offset)
    return list(session.scalars(q).all())
