"""Result models returned to callers of the sync engine and the composer."""

from pydantic import BaseModel


class SyncResult(BaseModel):
    """Aggregate outcome of one sync pass (counts only)."""

    processed: int = 0
    errors: int = 0
    done: bool = True  # False when a batch limit stopped the pass early


class SentSyncResult(BaseModel):
    """Outcome of importing the Sent folder."""

    processed: int = 0
    errors: int = 0
    skipped: int = 0  # no thread could be resolved


class SendResult(BaseModel):
    """Identifiers of a successfully sent and stored outbound message."""

    thread_id: str
    message_id: str
