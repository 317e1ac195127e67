"""ORM model for the inbound sync cursor (single row)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mailsync.db.base import Base, UTCDateTime

CURSOR_ID = "main"


class SyncState(Base):
    """High-water mark of the last processed IMAP UID. last_uid only ever increases."""

    __tablename__ = "email_sync_state"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=CURSOR_ID)
    last_uid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
