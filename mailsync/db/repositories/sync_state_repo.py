"""Sync cursor repository: read the high-water mark, advance it with compare-and-set."""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from mailsync.db import get_session
from mailsync.db.base import utcnow
from mailsync.db.models.sync_state import CURSOR_ID, SyncState
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.db.sync_state_repo")


def _create_row_if_missing() -> None:
    """Insert the cursor row at 0. Losing the insert race to another run is fine."""
    try:
        with get_session() as session:
            if session.get(SyncState, CURSOR_ID) is None:
                session.add(SyncState(id=CURSOR_ID, last_uid=0, version=0))
    except IntegrityError:
        logger.debug("sync_cursor.created_concurrently")


def get_state() -> Optional[SyncState]:
    """Return the cursor row, or None before the first sync."""
    with get_session() as session:
        return session.get(SyncState, CURSOR_ID)


def get_last_uid() -> int:
    """Last processed UID; 0 means sync from the beginning of the mailbox."""
    state = get_state()
    return state.last_uid if state is not None else 0


def advance_cursor(new_uid: int) -> bool:
    """Store new_uid only if it is greater than the stored value.

    Returns True if the cursor moved. A slower concurrent run holding a lower
    value gets False and leaves the higher value in place.
    """
    _create_row_if_missing()
    with get_session() as session:
        result = session.execute(
            update(SyncState)
            .where(SyncState.id == CURSOR_ID)
            .where(SyncState.last_uid < new_uid)
            .values(
                last_uid=new_uid,
                last_sync_at=utcnow(),
                version=SyncState.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        advanced = result.rowcount == 1
    if advanced:
        logger.info("sync_cursor.advanced", last_uid=new_uid)
    else:
        logger.debug("sync_cursor.not_advanced", requested_uid=new_uid)
    return advanced
