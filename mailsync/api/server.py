"""FastAPI application exposing sync, thread and reply endpoints."""

from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI

from mailsync.api.mail_routes import router as mail_router
from mailsync.api.thread_routes import router as thread_router
from mailsync.db import init_db
from mailsync.mail_provider.imap_mailbox import ImapMailbox
from mailsync.mail_provider.protocol import MailSender, Mailbox
from mailsync.mail_provider.smtp_sender import SmtpSender
from mailsync.storage.attachment_store import AttachmentStore
from mailsync.utils.logger import get_logger
from mailsync.utils.tracing import init_tracing, shutdown_tracing

logger = get_logger("mailsync.api.server")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    init_db()
    init_tracing()
    logger.info("api.lifespan.started")
    yield
    shutdown_tracing()
    logger.info("api.lifespan.stopped")


def create_app(
    mailbox_factory: Optional[Callable[[], Mailbox]] = None,
    sender: Optional[MailSender] = None,
    attachment_store: Optional[AttachmentStore] = None,
) -> FastAPI:
    """
    Create the FastAPI app. mailbox_factory builds a fresh mailbox per sync call
    (ImapMailbox from configuration by default); sender defaults to SmtpSender.
    attachment_store=None means the configured S3 store, built on first attachment.
    """
    app = FastAPI(title="Mailsync", version="0.1.0", lifespan=_lifespan)
    app.state.mailbox_factory = mailbox_factory or ImapMailbox
    app.state.sender = sender or SmtpSender()
    app.state.attachment_store = attachment_store

    app.include_router(mail_router)
    app.include_router(thread_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    return app
