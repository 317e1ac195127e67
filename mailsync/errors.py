"""Exceptions raised by the sync engine and the outbound sender."""


class MailSyncError(Exception):
    """Base exception for mailsync."""

    pass


class MailboxConnectionError(MailSyncError):
    """Mailbox unreachable or authentication refused. Aborts the whole sync call."""

    pass


class MailSendError(MailSyncError):
    """SMTP submission failed. Nothing was persisted."""

    pass


class ThreadNotFoundError(MailSyncError):
    """No thread with the given id."""

    def __init__(self, thread_id: str):
        super().__init__(f"Thread not found: {thread_id}")
        self.thread_id = thread_id


class MessageParseError(MailSyncError):
    """Raw message bytes could not be parsed."""

    pass


class AttachmentUploadError(MailSyncError):
    """Blob storage rejected an attachment upload."""

    pass
