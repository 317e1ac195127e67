"""Inbound synchronization: mailbox -> parse -> resolve thread -> attachments -> persist -> cursor.

Messages are processed one at a time in ascending UID order; a later
message in a batch may reply to an earlier one, so the resolver must see
every prior message already committed. Each message gets its own session,
so a failure rolls back that message only.
"""

from datetime import datetime, timezone
from time import perf_counter
from typing import NamedTuple, Optional

from opentelemetry.trace import Status, StatusCode
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailsync.config import IMAP_SENT_FOLDER, SYNC_BATCH_LIMIT
from mailsync.db import get_session
from mailsync.db.repositories import message_repo, sync_state_repo, thread_repo
from mailsync.errors import MailboxConnectionError, MailSyncError
from mailsync.mail_provider.imap_mailbox import ImapMailbox
from mailsync.mail_provider.protocol import Mailbox
from mailsync.models.email import ParsedMessage
from mailsync.models.outputs import SentSyncResult, SyncResult
from mailsync.storage.attachment_store import AttachmentStore, get_attachment_store
from mailsync.thread_resolver import ThreadCandidate, ThreadResolver, strip_subject_prefixes
from mailsync.utils.email_parser import parse_message
from mailsync.utils.logger import get_logger, run_context
from mailsync.utils.tracing import get_tracer

logger = get_logger("mailsync.orchestrator")

OUTCOME_CREATED = "created"
OUTCOME_APPENDED = "appended"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_UNRESOLVED = "unresolved"


class IngestOutcome(NamedTuple):
    outcome: str
    thread_id: Optional[str] = None
    strategy: Optional[str] = None


def thread_subject(subject: str) -> str:
    """Subject stored on a new thread: prefixes stripped, raw subject if nothing is left."""
    return strip_subject_prefixes(subject) or subject


def ingest_message(
    session: Session,
    parsed: ParsedMessage,
    resolver: ThreadResolver,
    attachment_store: Optional[AttachmentStore] = None,
    now: Optional[datetime] = None,
    create_threads: bool = True,
    reopen_on_counterparty: bool = True,
) -> IngestOutcome:
    """Attach one parsed message to its thread and store it.

    Already-stored Message-IDs are a no-op. With create_threads=False an
    unresolvable message is left out instead of starting a new thread.
    """
    if message_repo.message_exists(session, parsed.message_id):
        return IngestOutcome(OUTCOME_DUPLICATE)

    candidate = ThreadCandidate(
        message_id=parsed.message_id,
        subject=parsed.subject,
        in_reply_to=parsed.in_reply_to,
        references=tuple(parsed.references),
    )
    resolution = resolver.resolve(session, candidate, now=now)
    if resolution is not None:
        thread_id, strategy, outcome = resolution.thread_id, resolution.strategy, OUTCOME_APPENDED
    elif not create_threads:
        return IngestOutcome(OUTCOME_UNRESOLVED)
    else:
        thread = thread_repo.create_thread(
            session,
            subject=thread_subject(parsed.subject),
            customer_name=parsed.counterparty_name,
            customer_email=parsed.counterparty_email,
            started_at=parsed.date,
            root_message_id=parsed.message_id,
        )
        thread_id, strategy, outcome = thread.id, None, OUTCOME_CREATED

    attachments = []
    if parsed.attachments:
        store = attachment_store or get_attachment_store()
        attachments = store.store_all(parsed.attachments, thread_id, parsed.message_id)

    row = message_repo.insert_message(
        session,
        thread_id=thread_id,
        message_id=parsed.message_id,
        created_at=parsed.date,
        in_reply_to=parsed.in_reply_to,
        references=parsed.references,
        from_email=parsed.from_email,
        from_name=parsed.from_name,
        to_email=parsed.to_email,
        subject=parsed.subject,
        body_text=parsed.body_text,
        body_html=parsed.body_html,
        from_operator=parsed.from_operator,
        uid=parsed.uid,
        attachments=attachments,
    )
    if row is None:
        return IngestOutcome(OUTCOME_DUPLICATE, thread_id)

    thread_repo.refresh_thread_stats(
        session,
        thread_id,
        reopen=reopen_on_counterparty and not parsed.from_operator,
    )
    return IngestOutcome(outcome, thread_id, strategy)


def _ingest_uid(
    mailbox: Mailbox,
    uid: int,
    resolver: ThreadResolver,
    attachment_store: Optional[AttachmentStore],
    now: Optional[datetime],
) -> IngestOutcome:
    raw = mailbox.fetch(uid)
    parsed = parse_message(raw, uid=uid)
    with get_session() as session:
        return ingest_message(session, parsed, resolver, attachment_store, now=now)


def sync_inbox(
    mailbox: Optional[Mailbox] = None,
    limit: Optional[int] = None,
    attachment_store: Optional[AttachmentStore] = None,
    resolver: Optional[ThreadResolver] = None,
    now: Optional[datetime] = None,
) -> SyncResult:
    """Import every message above the cursor and advance the cursor.

    Per-message failures are logged and counted; the cursor still moves past
    them. MailboxConnectionError propagates and leaves the cursor untouched.
    limit caps the batch (SYNC_BATCH_LIMIT when not given; 0 means no cap);
    done is False when more messages remain.
    """
    with run_context("sync_inbox"):
        return _run_sync_inbox(mailbox, limit, attachment_store, resolver, now)


def _run_sync_inbox(
    mailbox: Optional[Mailbox] = None,
    limit: Optional[int] = None,
    attachment_store: Optional[AttachmentStore] = None,
    resolver: Optional[ThreadResolver] = None,
    now: Optional[datetime] = None,
) -> SyncResult:
    tracer = get_tracer()
    mailbox = mailbox if mailbox is not None else ImapMailbox()
    resolver = resolver or ThreadResolver()
    if limit is None:
        limit = SYNC_BATCH_LIMIT

    start = perf_counter()
    last_uid = sync_state_repo.get_last_uid()
    log = logger.bind(last_uid=last_uid)
    log.info("sync_inbox.start", limit=limit or None)

    processed = 0
    errors = 0
    duplicates = 0
    max_uid = last_uid
    done = True

    with tracer.start_as_current_span("sync_inbox", attributes={"sync.last_uid": last_uid}) as root_span:
        try:
            with mailbox:
                log.info("sync_inbox.connected", uid_validity=mailbox.uid_validity())
                uids = mailbox.uids_after(last_uid)
                if limit and len(uids) > limit:
                    log.info("sync_inbox.batch_limited", pending=len(uids), limit=limit)
                    uids = uids[:limit]
                    done = False
                root_span.set_attribute("sync.batch_size", len(uids))

                for uid in uids:
                    with tracer.start_as_current_span("process_message", attributes={"mail.uid": uid}) as span:
                        try:
                            result = _ingest_uid(mailbox, uid, resolver, attachment_store, now)
                        except MailboxConnectionError:
                            raise
                        except IntegrityError:
                            # Another run stored the same Message-ID first
                            log.info("sync_inbox.duplicate_race", uid=uid)
                            result = IngestOutcome(OUTCOME_DUPLICATE)
                        except Exception as e:
                            errors += 1
                            span.set_status(Status(StatusCode.ERROR, str(e)))
                            span.record_exception(e)
                            log.exception("sync_inbox.message_failed", uid=uid)
                            max_uid = max(max_uid, uid)
                            continue

                        max_uid = max(max_uid, uid)
                        span.set_attribute("mail.outcome", result.outcome)
                        if result.outcome == OUTCOME_DUPLICATE:
                            duplicates += 1
                            continue
                        processed += 1
                        log.debug(
                            "sync_inbox.message_stored",
                            uid=uid,
                            thread_id=result.thread_id,
                            outcome=result.outcome,
                            strategy=result.strategy,
                        )
        except MailboxConnectionError as e:
            root_span.set_status(Status(StatusCode.ERROR, str(e)))
            root_span.record_exception(e)
            log.error("sync_inbox.connection_failed", error=str(e), processed=processed)
            raise

        if max_uid > last_uid:
            sync_state_repo.advance_cursor(max_uid)

        root_span.set_attribute("sync.processed", processed)
        root_span.set_attribute("sync.errors", errors)

    log.info(
        "sync_inbox.complete",
        processed=processed,
        errors=errors,
        duplicates=duplicates,
        max_uid=max_uid,
        done=done,
        duration_ms=round((perf_counter() - start) * 1000, 2),
    )
    return SyncResult(processed=processed, errors=errors, done=done)


def sync_sent(
    mailbox: Optional[Mailbox] = None,
    folder: Optional[str] = None,
    attachment_store: Optional[AttachmentStore] = None,
    resolver: Optional[ThreadResolver] = None,
    now: Optional[datetime] = None,
) -> SentSyncResult:
    """Import operator replies sent from another mail client.

    Scans the whole Sent folder (no cursor). A message is only stored when it
    resolves to an existing thread; it never creates or reopens threads.
    """
    with run_context("sync_sent"):
        return _run_sync_sent(mailbox, folder, attachment_store, resolver, now)


def _run_sync_sent(
    mailbox: Optional[Mailbox] = None,
    folder: Optional[str] = None,
    attachment_store: Optional[AttachmentStore] = None,
    resolver: Optional[ThreadResolver] = None,
    now: Optional[datetime] = None,
) -> SentSyncResult:
    tracer = get_tracer()
    mailbox = mailbox if mailbox is not None else ImapMailbox()
    resolver = resolver or ThreadResolver()
    now = now or datetime.now(timezone.utc)
    log = logger.bind()

    processed = 0
    errors = 0
    skipped = 0

    with tracer.start_as_current_span("sync_sent") as root_span:
        with mailbox:
            folder = folder or IMAP_SENT_FOLDER or mailbox.find_sent_folder()
            if not folder:
                raise MailSyncError("Sent folder not found; set IMAP_SENT_FOLDER")
            mailbox.select(folder)
            log = log.bind(folder=folder)
            uids = mailbox.uids_after(0)
            log.info("sync_sent.start", message_count=len(uids))
            root_span.set_attribute("sync.folder", folder)

            for uid in uids:
                try:
                    parsed = parse_message(mailbox.fetch(uid), uid=uid, missing_id_prefix="sent")
                    # Sent-folder UIDs are not the inbox UID space
                    parsed = parsed.model_copy(
                        update={
                            "from_operator": True,
                            "counterparty_email": parsed.to_email,
                            "counterparty_name": parsed.to_name or parsed.to_email,
                            "uid": None,
                        }
                    )
                    with get_session() as session:
                        result = ingest_message(
                            session,
                            parsed,
                            resolver,
                            attachment_store,
                            now=now,
                            create_threads=False,
                            reopen_on_counterparty=False,
                        )
                except MailboxConnectionError:
                    raise
                except IntegrityError:
                    log.info("sync_sent.duplicate_race", uid=uid)
                    continue
                except Exception:
                    errors += 1
                    log.exception("sync_sent.message_failed", uid=uid)
                    continue

                if result.outcome == OUTCOME_UNRESOLVED:
                    skipped += 1
                    log.debug("sync_sent.unresolved", uid=uid, message_id=parsed.message_id)
                elif result.outcome != OUTCOME_DUPLICATE:
                    processed += 1

        root_span.set_attribute("sync.processed", processed)

    log.info("sync_sent.complete", processed=processed, errors=errors, skipped=skipped)
    return SentSyncResult(processed=processed, errors=errors, skipped=skipped)
