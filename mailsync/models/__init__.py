"""Pydantic models for mailsync."""

from mailsync.models.email import AttachmentRef, ParsedMessage, RawAttachment, ReplyRequest
from mailsync.models.outputs import SendResult, SentSyncResult, SyncResult

__all__ = [
    "AttachmentRef",
    "ParsedMessage",
    "RawAttachment",
    "ReplyRequest",
    "SendResult",
    "SentSyncResult",
    "SyncResult",
]
