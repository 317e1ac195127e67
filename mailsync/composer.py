"""Outbound mail: build threaded replies and new conversations, send, then store.

Nothing is written before the send succeeds, so a failed send leaves no
message or thread behind.
"""

from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import format_datetime, formataddr, make_msgid
from typing import Optional

from opentelemetry.trace import Status, StatusCode

from mailsync.config import MESSAGE_ID_DOMAIN, OPERATOR_EMAIL, OPERATOR_NAME
from mailsync.db import get_session
from mailsync.db.repositories import message_repo, thread_repo
from mailsync.errors import MailSendError, ThreadNotFoundError
from mailsync.mail_provider.protocol import MailSender
from mailsync.mail_provider.smtp_sender import SmtpSender
from mailsync.models.email import ReplyRequest
from mailsync.models.outputs import SendResult
from mailsync.orchestrator import thread_subject
from mailsync.utils.email_parser import format_references
from mailsync.utils.logger import get_logger
from mailsync.utils.tracing import get_tracer

logger = get_logger("mailsync.composer")


def compose_message(
    request: ReplyRequest,
    message_id: str,
    sent_at: datetime,
    in_reply_to: Optional[str] = None,
    references: Optional[list[str]] = None,
) -> EmailMessage:
    """Build the MIME message: text part, optional HTML alternative, threading headers."""
    msg = EmailMessage()
    msg["From"] = formataddr((OPERATOR_NAME, OPERATOR_EMAIL))
    msg["To"] = formataddr((request.to_name or "", request.to))
    msg["Subject"] = request.subject
    msg["Date"] = format_datetime(sent_at)
    msg["Message-ID"] = message_id
    if in_reply_to:
        msg["In-Reply-To"] = in_reply_to
    refs = format_references(references or [])
    if refs:
        msg["References"] = refs
    msg.set_content(request.body_text or "")
    if request.body_html:
        msg.add_alternative(request.body_html, subtype="html")
    return msg


def send_reply(
    thread_id: str,
    request: ReplyRequest,
    sender: Optional[MailSender] = None,
    now: Optional[datetime] = None,
) -> str:
    """Send a reply on an existing thread and store it; returns the new Message-ID.

    In-Reply-To is the thread's latest Message-ID and References is the whole
    chain, oldest first. The thread status is left as it is.
    """
    tracer = get_tracer()
    sender = sender or SmtpSender()
    now = now or datetime.now(timezone.utc)
    log = logger.bind(thread_id=thread_id, to=request.to)

    with tracer.start_as_current_span("send_reply", attributes={"mail.thread_id": thread_id}) as span:
        with get_session() as session:
            if thread_repo.get_thread(session, thread_id) is None:
                log.warning("send_reply.thread_not_found")
                raise ThreadNotFoundError(thread_id)
            chain = message_repo.list_message_ids(session, thread_id)

        message_id = make_msgid(domain=MESSAGE_ID_DOMAIN)
        in_reply_to = chain[-1] if chain else None
        msg = compose_message(request, message_id, now, in_reply_to=in_reply_to, references=chain)

        try:
            sender.send(msg)
        except MailSendError as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            log.error("send_reply.failed", error=str(e))
            raise

        with get_session() as session:
            message_repo.insert_message(
                session,
                thread_id=thread_id,
                message_id=message_id,
                created_at=now,
                in_reply_to=in_reply_to,
                references=chain,
                from_email=OPERATOR_EMAIL,
                from_name=OPERATOR_NAME,
                to_email=request.to,
                subject=request.subject,
                body_text=request.body_text or None,
                body_html=request.body_html or None,
                from_operator=True,
            )
            thread_repo.refresh_thread_stats(session, thread_id, reopen=False)

        span.set_attribute("mail.message_id", message_id)

    log.info("send_reply.complete", message_id=message_id, chain_length=len(chain))
    return message_id


def create_thread_and_send(
    request: ReplyRequest,
    sender: Optional[MailSender] = None,
    now: Optional[datetime] = None,
) -> SendResult:
    """Start a new conversation with request.to: send first, then create the thread and message."""
    tracer = get_tracer()
    sender = sender or SmtpSender()
    now = now or datetime.now(timezone.utc)
    log = logger.bind(to=request.to)

    with tracer.start_as_current_span("create_thread_and_send") as span:
        message_id = make_msgid(domain=MESSAGE_ID_DOMAIN)
        msg = compose_message(request, message_id, now)
        try:
            sender.send(msg)
        except MailSendError as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            log.error("create_thread_and_send.failed", error=str(e))
            raise

        with get_session() as session:
            thread = thread_repo.create_thread(
                session,
                subject=thread_subject(request.subject),
                customer_name=request.to_name or request.to,
                customer_email=request.to,
                started_at=now,
                root_message_id=message_id,
            )
            message_repo.insert_message(
                session,
                thread_id=thread.id,
                message_id=message_id,
                created_at=now,
                from_email=OPERATOR_EMAIL,
                from_name=OPERATOR_NAME,
                to_email=request.to,
                subject=request.subject,
                body_text=request.body_text or None,
                body_html=request.body_html or None,
                from_operator=True,
            )
            thread_id = thread.id

        span.set_attribute("mail.thread_id", thread_id)

    log.info("create_thread_and_send.complete", thread_id=thread_id, message_id=message_id)
    return SendResult(thread_id=thread_id, message_id=message_id)
