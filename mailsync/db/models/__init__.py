"""Re-export all ORM models so Base.metadata has all tables."""

from mailsync.db.models.sync_state import CURSOR_ID, SyncState
from mailsync.db.models.thread import (
    STATUS_CLOSED,
    STATUS_OPEN,
    THREAD_STATUSES,
    EmailMessage,
    EmailThread,
)

__all__ = [
    "CURSOR_ID",
    "STATUS_CLOSED",
    "STATUS_OPEN",
    "THREAD_STATUSES",
    "EmailMessage",
    "EmailThread",
    "SyncState",
]
