"""Thread API routes: list, read, change status, reply, start a conversation."""

import asyncio
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from mailsync.api.views import message_to_ticket_message, thread_to_ticket
from mailsync.composer import create_thread_and_send, send_reply
from mailsync.db import get_session
from mailsync.db.models.thread import THREAD_STATUSES
from mailsync.db.repositories import message_repo, thread_repo
from mailsync.errors import MailSendError, ThreadNotFoundError
from mailsync.models.email import ReplyRequest
from mailsync.models.outputs import SendResult
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.api.threads")

router = APIRouter(prefix="/threads", tags=["threads"])


class StatusBody(BaseModel):
    status: Literal["open", "closed"]


@router.get("")
async def list_threads(
    status: Optional[str] = Query(None, description="open or closed"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    """Threads as tickets, most recent activity first."""
    if status is not None and status not in THREAD_STATUSES:
        raise HTTPException(status_code=422, detail=f"Invalid status: {status}")

    def _query() -> dict[str, Any]:
        with get_session() as session:
            threads = thread_repo.list_threads(session, status=status, limit=limit, offset=offset)
            items = [thread_to_ticket(t) for t in threads]
        return {"data": items, "limit": limit, "offset": offset}

    return await asyncio.to_thread(_query)


@router.get("/{thread_id}/messages")
async def list_thread_messages(thread_id: str) -> dict[str, Any]:
    def _query() -> Optional[dict[str, Any]]:
        with get_session() as session:
            thread = thread_repo.get_thread(session, thread_id)
            if thread is None:
                return None
            messages = message_repo.list_messages(session, thread_id)
            return {
                "ticket": thread_to_ticket(thread),
                "data": [message_to_ticket_message(m) for m in messages],
            }

    result = await asyncio.to_thread(_query)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Thread not found: {thread_id}")
    return result


@router.patch("/{thread_id}")
async def update_thread_status(thread_id: str, body: StatusBody) -> dict[str, Any]:
    """Open or close a thread."""

    def _update() -> Optional[dict[str, Any]]:
        with get_session() as session:
            thread = thread_repo.set_thread_status(session, thread_id, body.status)
            return thread_to_ticket(thread) if thread is not None else None

    result = await asyncio.to_thread(_update)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Thread not found: {thread_id}")
    logger.info("api.thread_status.updated", thread_id=thread_id, status=body.status)
    return result


@router.post("/{thread_id}/reply")
async def reply_to_thread(thread_id: str, body: ReplyRequest, request: Request) -> SendResult:
    try:
        message_id = await asyncio.to_thread(
            send_reply, thread_id, body, sender=request.app.state.sender
        )
    except ThreadNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except MailSendError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return SendResult(thread_id=thread_id, message_id=message_id)


@router.post("")
async def start_thread(body: ReplyRequest, request: Request) -> SendResult:
    """Send the first message of a new conversation and create its thread."""
    try:
        return await asyncio.to_thread(create_thread_and_send, body, sender=request.app.state.sender)
    except MailSendError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
