"""Sync API routes: trigger inbox and Sent-folder synchronization."""

import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from mailsync.errors import MailboxConnectionError, MailSyncError
from mailsync.models.outputs import SentSyncResult, SyncResult
from mailsync.orchestrator import sync_inbox, sync_sent
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.api.mail")

router = APIRouter(prefix="/mail", tags=["mail"])


@router.post("/sync")
async def sync_mail(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max messages this call"),
) -> SyncResult:
    """Import new inbox messages. Call again while done is false."""
    state = request.app.state
    try:
        return await asyncio.to_thread(
            sync_inbox,
            mailbox=state.mailbox_factory(),
            limit=limit,
            attachment_store=state.attachment_store,
        )
    except MailboxConnectionError as e:
        logger.error("api.sync.connection_failed", error=str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e
    except MailSyncError as e:
        logger.error("api.sync.mailbox_unusable", error=str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e


@router.post("/sync-sent")
async def sync_sent_mail(
    request: Request,
    folder: Optional[str] = Query(None, description="Sent folder name (auto-detected if omitted)"),
) -> SentSyncResult:
    state = request.app.state
    try:
        return await asyncio.to_thread(
            sync_sent,
            mailbox=state.mailbox_factory(),
            folder=folder,
            attachment_store=state.attachment_store,
        )
    except MailboxConnectionError as e:
        logger.error("api.sync_sent.connection_failed", error=str(e))
        raise HTTPException(status_code=502, detail=str(e)) from e
    except MailSyncError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
