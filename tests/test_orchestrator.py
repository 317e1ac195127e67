"""Tests for inbound sync: threading, idempotency, cursor handling, failures and attachments."""

import unittest

import boto3
from moto import mock_aws

from mail_factory import CUSTOMER, OPERATOR, build_message, days_ago

from mailsync.db import get_session, reset_db
from mailsync.db.repositories import message_repo, sync_state_repo, thread_repo
from mailsync.errors import MailboxConnectionError
from mailsync.mail_provider.mock import MockMailbox
from mailsync.orchestrator import sync_inbox
from mailsync.storage.attachment_store import AttachmentStore


def _threads():
    with get_session() as session:
        return thread_repo.list_threads(session, limit=100)


def _thread_of(message_id):
    with get_session() as session:
        thread_id = message_repo.find_thread_id_by_message_id(session, message_id)
        return thread_repo.get_thread(session, thread_id) if thread_id else None


class TestSyncInbox(unittest.TestCase):
    def setUp(self):
        reset_db()

    def test_new_thread_from_first_message(self):
        mailbox = MockMailbox({1: build_message(subject="Re: Question order", date=days_ago(1))})
        result = sync_inbox(mailbox=mailbox)
        self.assertEqual((result.processed, result.errors, result.done), (1, 0, True))
        thread = _thread_of("<x1@customer>")
        self.assertEqual(thread.subject, "Question order")
        self.assertEqual(thread.status, "open")
        self.assertEqual(thread.message_count, 1)
        self.assertEqual(thread.customer_email, CUSTOMER)
        self.assertEqual(thread.customer_name, "Jane Customer")
        self.assertEqual(sync_state_repo.get_last_uid(), 1)

    def test_idempotent_resync(self):
        mailbox = MockMailbox(
            {
                1: build_message(message_id="<a@x>", date=days_ago(2)),
                2: build_message(message_id="<b@x>", in_reply_to="<a@x>", date=days_ago(1)),
            }
        )
        self.assertEqual(sync_inbox(mailbox=mailbox).processed, 2)
        second = sync_inbox(mailbox=mailbox)
        self.assertEqual((second.processed, second.errors), (0, 0))
        self.assertEqual(len(_threads()), 1)

    def test_duplicate_message_id_stored_once(self):
        raw = build_message(message_id="<same@x>", date=days_ago(1))
        mailbox = MockMailbox({1: raw, 2: raw})
        result = sync_inbox(mailbox=mailbox)
        self.assertEqual((result.processed, result.errors), (1, 0))
        with get_session() as session:
            thread_id = message_repo.find_thread_id_by_message_id(session, "<same@x>")
            self.assertEqual(message_repo.count_messages(session, thread_id), 1)
        # Skipped duplicates still move the cursor
        self.assertEqual(sync_state_repo.get_last_uid(), 2)

    def test_already_stored_message_below_new_cursor_is_skipped(self):
        sync_inbox(mailbox=MockMailbox({1: build_message(message_id="<a@x>", date=days_ago(1))}))
        # The same message reappears under a new UID (e.g. moved back into the folder)
        result = sync_inbox(mailbox=MockMailbox({5: build_message(message_id="<a@x>", date=days_ago(1))}))
        self.assertEqual(result.processed, 0)
        self.assertEqual(sync_state_repo.get_last_uid(), 5)

    def test_direct_reply_joins_thread(self):
        mailbox = MockMailbox(
            {
                1: build_message(message_id="<a@x>", subject="Order A", date=days_ago(2)),
                2: build_message(message_id="<b@x>", subject="Unrelated words", in_reply_to="<a@x>", date=days_ago(1)),
            }
        )
        sync_inbox(mailbox=mailbox)
        self.assertEqual(_thread_of("<a@x>").id, _thread_of("<b@x>").id)
        self.assertEqual(_thread_of("<a@x>").message_count, 2)

    def test_later_message_in_same_batch_sees_earlier_one(self):
        mailbox = MockMailbox(
            {
                3: build_message(message_id="<c@x>", subject="Other", in_reply_to="<b@x>", date=days_ago(1)),
                1: build_message(message_id="<a@x>", subject="First", date=days_ago(3)),
                2: build_message(message_id="<b@x>", subject="Second", in_reply_to="<a@x>", date=days_ago(2)),
            }
        )
        sync_inbox(mailbox=mailbox)
        self.assertEqual(mailbox.fetched, [1, 2, 3])
        self.assertEqual(len(_threads()), 1)
        self.assertEqual(_thread_of("<c@x>").message_count, 3)

    def test_references_fallback(self):
        mailbox = MockMailbox(
            {
                1: build_message(message_id="<a@x>", subject="Order A", date=days_ago(2)),
                2: build_message(
                    message_id="<c@x>",
                    subject="Something else",
                    in_reply_to="<not-stored@x>",
                    references=["<a@x>", "<not-stored@x>"],
                    date=days_ago(1),
                ),
            }
        )
        sync_inbox(mailbox=mailbox)
        self.assertEqual(_thread_of("<c@x>").id, _thread_of("<a@x>").id)

    def test_subject_fallback_inside_window(self):
        mailbox = MockMailbox(
            {
                1: build_message(message_id="<a@x>", subject="Order 42 damaged", date=days_ago(5)),
                2: build_message(message_id="<d@x>", subject="RE: Order 42 damaged", date=days_ago(0)),
            }
        )
        sync_inbox(mailbox=mailbox)
        self.assertEqual(_thread_of("<d@x>").id, _thread_of("<a@x>").id)
        self.assertEqual(len(_threads()), 1)

    def test_subject_fallback_outside_window_creates_new_thread(self):
        mailbox = MockMailbox(
            {
                1: build_message(message_id="<a@x>", subject="Order 42 damaged", date=days_ago(45)),
                2: build_message(message_id="<d@x>", subject="RE: Order 42 damaged", date=days_ago(0)),
            }
        )
        sync_inbox(mailbox=mailbox)
        self.assertNotEqual(_thread_of("<d@x>").id, _thread_of("<a@x>").id)
        self.assertEqual(len(_threads()), 2)
        self.assertEqual({t.subject for t in _threads()}, {"Order 42 damaged"})

    def test_counterparty_message_reopens_closed_thread(self):
        sync_inbox(mailbox=MockMailbox({1: build_message(message_id="<a@x>", date=days_ago(2))}))
        thread = _thread_of("<a@x>")
        with get_session() as session:
            thread_repo.set_thread_status(session, thread.id, "closed")
        sync_inbox(
            mailbox=MockMailbox({2: build_message(message_id="<b@x>", in_reply_to="<a@x>", date=days_ago(1))})
        )
        self.assertEqual(_thread_of("<b@x>").status, "open")

    def test_operator_message_does_not_reopen_closed_thread(self):
        sync_inbox(mailbox=MockMailbox({1: build_message(message_id="<a@x>", date=days_ago(2))}))
        thread = _thread_of("<a@x>")
        with get_session() as session:
            thread_repo.set_thread_status(session, thread.id, "closed")
        operator_copy = build_message(
            message_id="<b@shop.example>",
            from_addr=f"Shop Support <{OPERATOR}>",
            to_addr=CUSTOMER,
            in_reply_to="<a@x>",
            date=days_ago(1),
        )
        sync_inbox(mailbox=MockMailbox({2: operator_copy}))
        thread = _thread_of("<b@shop.example>")
        self.assertEqual(thread.status, "closed")
        self.assertEqual(thread.message_count, 2)
        with get_session() as session:
            self.assertTrue(message_repo.get_by_message_id(session, "<b@shop.example>").from_operator)

    def test_count_and_last_message_at_track_messages(self):
        dates = [days_ago(3), days_ago(1), days_ago(2)]
        mailbox = MockMailbox(
            {
                1: build_message(message_id="<a@x>", date=dates[0]),
                2: build_message(message_id="<b@x>", in_reply_to="<a@x>", date=dates[1]),
                # Arrives last but is dated earlier than the previous message
                3: build_message(message_id="<c@x>", in_reply_to="<a@x>", date=dates[2]),
            }
        )
        sync_inbox(mailbox=mailbox)
        thread = _thread_of("<a@x>")
        with get_session() as session:
            self.assertEqual(thread.message_count, message_repo.count_messages(session, thread.id))
            messages = message_repo.list_messages(session, thread.id)
        self.assertEqual(thread.message_count, 3)
        self.assertEqual(thread.last_message_at, max(m.created_at for m in messages))
        self.assertEqual(thread.last_message_at, dates[1].replace(microsecond=0))

    def test_per_message_failure_continues_and_advances_cursor(self):
        mailbox = MockMailbox(
            {
                1: build_message(message_id="<a@x>", subject="One", date=days_ago(3)),
                2: build_message(message_id="<b@x>", subject="Two", date=days_ago(2)),
                3: build_message(message_id="<c@x>", subject="Three", date=days_ago(1)),
            },
            fail_on={2},
        )
        result = sync_inbox(mailbox=mailbox)
        self.assertEqual((result.processed, result.errors), (2, 1))
        self.assertIsNone(_thread_of("<b@x>"))
        self.assertEqual(sync_state_repo.get_last_uid(), 3)

    def test_failed_last_message_still_advances_cursor(self):
        mailbox = MockMailbox({1: build_message(message_id="<a@x>"), 2: build_message(message_id="<b@x>")}, fail_on={2})
        sync_inbox(mailbox=mailbox)
        self.assertEqual(sync_state_repo.get_last_uid(), 2)

    def test_connection_failure_propagates_and_leaves_cursor(self):
        sync_state_repo.advance_cursor(4)
        mailbox = MockMailbox({5: build_message()}, fail_connect=True)
        with self.assertRaises(MailboxConnectionError):
            sync_inbox(mailbox=mailbox)
        self.assertEqual(sync_state_repo.get_last_uid(), 4)
        self.assertEqual(_threads(), [])

    def test_connection_lost_mid_batch_keeps_cursor_and_recovers(self):
        messages = {
            1: build_message(message_id="<a@x>", subject="One", date=days_ago(3)),
            2: build_message(message_id="<b@x>", subject="Two", date=days_ago(2)),
            3: build_message(message_id="<c@x>", subject="Three", date=days_ago(1)),
        }
        with self.assertRaises(MailboxConnectionError):
            sync_inbox(mailbox=MockMailbox(messages, disconnect_on={2}))
        self.assertEqual(sync_state_repo.get_last_uid(), 0)

        result = sync_inbox(mailbox=MockMailbox(messages))
        self.assertEqual((result.processed, result.errors), (2, 0))
        self.assertEqual(len(_threads()), 3)
        self.assertEqual(sync_state_repo.get_last_uid(), 3)

    def test_batch_limit_reports_done(self):
        mailbox = MockMailbox(
            {uid: build_message(message_id=f"<m{uid}@x>", subject=f"Subject {uid}") for uid in (1, 2, 3)}
        )
        first = sync_inbox(mailbox=mailbox, limit=2)
        self.assertEqual((first.processed, first.done), (2, False))
        self.assertEqual(sync_state_repo.get_last_uid(), 2)
        second = sync_inbox(mailbox=mailbox, limit=2)
        self.assertEqual((second.processed, second.done), (1, True))
        self.assertEqual(sync_state_repo.get_last_uid(), 3)

    def test_missing_message_id_uses_uid(self):
        mailbox = MockMailbox({9: build_message(message_id=None)})
        sync_inbox(mailbox=mailbox)
        self.assertIsNotNone(_thread_of("<generated-9@shop.example>"))


class TestSyncInboxAttachments(unittest.TestCase):
    def setUp(self):
        reset_db()
        self.mock = mock_aws()
        self.mock.start()
        self.addCleanup(self.mock.stop)
        self.s3 = boto3.client("s3", region_name="us-east-1")
        self.s3.create_bucket(Bucket="attachments")

    def _raw(self):
        return build_message(
            message_id="<att@x>",
            attachments=(("photo.jpg", "image", "jpeg", b"\xff\xd8\xff jpeg"),),
        )

    def test_attachment_uploaded_and_referenced(self):
        store = AttachmentStore(bucket_name="attachments", client=self.s3, public_base_url="")
        sync_inbox(mailbox=MockMailbox({1: self._raw()}), attachment_store=store)
        thread = _thread_of("<att@x>")
        with get_session() as session:
            row = message_repo.get_by_message_id(session, "<att@x>")
        self.assertEqual(len(row.attachments), 1)
        ref = row.attachments[0]
        self.assertEqual(ref["name"], "photo.jpg")
        self.assertEqual(ref["content_type"], "image/jpeg")
        self.assertEqual(ref["size"], len(b"\xff\xd8\xff jpeg"))
        obj = self.s3.get_object(Bucket="attachments", Key=f"{thread.id}/att@x/photo.jpg")
        self.assertEqual(obj["Body"].read(), b"\xff\xd8\xff jpeg")

    def test_upload_failure_keeps_message(self):
        store = AttachmentStore(bucket_name="missing-bucket", client=self.s3, public_base_url="")
        result = sync_inbox(mailbox=MockMailbox({1: self._raw()}), attachment_store=store)
        self.assertEqual((result.processed, result.errors), (1, 0))
        with get_session() as session:
            row = message_repo.get_by_message_id(session, "<att@x>")
        self.assertEqual(row.attachments, [])


if __name__ == "__main__":
    unittest.main()
