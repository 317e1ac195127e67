"""Tests for raw message parsing: identifiers, direction, counterparty, bodies, attachments."""

import unittest
from datetime import datetime, timedelta, timezone

from mail_factory import CUSTOMER, OPERATOR, build_message

from mailsync.errors import MessageParseError
from mailsync.utils.email_parser import (
    format_references,
    parse_message,
    parse_message_ids,
    split_references,
    synthesize_message_id,
)


class TestParseMessage(unittest.TestCase):
    def test_inbound_fields(self):
        raw = build_message(
            message_id="<x2@customer>",
            subject="Re: Question order",
            from_addr="Jane Customer <Customer@Example.COM>",
            in_reply_to="<x1@customer>",
            references=["<x0@customer>", "<x1@customer>"],
        )
        parsed = parse_message(raw, uid=12)
        self.assertEqual(parsed.message_id, "<x2@customer>")
        self.assertEqual(parsed.in_reply_to, "<x1@customer>")
        self.assertEqual(parsed.references, ["<x0@customer>", "<x1@customer>"])
        self.assertEqual(parsed.from_email, CUSTOMER)
        self.assertEqual(parsed.to_email, OPERATOR)
        self.assertEqual(parsed.subject, "Re: Question order")
        self.assertFalse(parsed.from_operator)
        self.assertEqual(parsed.counterparty_email, CUSTOMER)
        self.assertEqual(parsed.counterparty_name, "Jane Customer")
        self.assertEqual(parsed.uid, 12)
        self.assertIn("where is my order", parsed.body_text)

    def test_operator_direction_is_case_insensitive(self):
        raw = build_message(
            from_addr="Shop <SUPPORT@Shop.Example>",
            to_addr="bob@example.org",
        )
        parsed = parse_message(raw, uid=1)
        self.assertTrue(parsed.from_operator)
        self.assertEqual(parsed.counterparty_email, "bob@example.org")
        # No display name: the address stands in
        self.assertEqual(parsed.counterparty_name, "bob@example.org")

    def test_missing_message_id_is_synthesized_deterministically(self):
        raw = build_message(message_id=None)
        first = parse_message(raw, uid=7)
        second = parse_message(raw, uid=7)
        self.assertEqual(first.message_id, "<generated-7@shop.example>")
        self.assertEqual(first.message_id, second.message_id)
        self.assertNotEqual(parse_message(raw, uid=8).message_id, first.message_id)

    def test_missing_message_id_without_uid_raises(self):
        with self.assertRaises(MessageParseError):
            parse_message(build_message(message_id=None))

    def test_missing_subject_gets_placeholder(self):
        parsed = parse_message(build_message(subject=None), uid=1)
        self.assertEqual(parsed.subject, "(no subject)")

    def test_date_is_parsed_as_aware_utc(self):
        parsed = parse_message(build_message(raw_date="Tue, 06 Oct 2026 10:30:00 +0200"), uid=1)
        self.assertEqual(parsed.date, datetime(2026, 10, 6, 8, 30, tzinfo=timezone.utc))

    def test_unparseable_date_falls_back_to_now(self):
        parsed = parse_message(build_message(raw_date="not a date"), uid=1)
        self.assertLess(abs(datetime.now(timezone.utc) - parsed.date), timedelta(minutes=1))

    def test_html_only_body_gets_text_rendition(self):
        raw = build_message(body=None, html="<html><body><p>Hello&nbsp;there</p><p>Second</p></body></html>")
        parsed = parse_message(raw, uid=1)
        self.assertIsNotNone(parsed.body_html)
        self.assertIn("Hello there", parsed.body_text)
        self.assertIn("Second", parsed.body_text)

    def test_attachments_extracted(self):
        raw = build_message(
            attachments=(("invoice.pdf", "application", "pdf", b"%PDF-1.4 fake"),),
        )
        parsed = parse_message(raw, uid=1)
        self.assertEqual(len(parsed.attachments), 1)
        att = parsed.attachments[0]
        self.assertEqual(att.filename, "invoice.pdf")
        self.assertEqual(att.content_type, "application/pdf")
        self.assertEqual(att.content, b"%PDF-1.4 fake")
        self.assertEqual(att.size, len(b"%PDF-1.4 fake"))
        self.assertIn("where is my order", parsed.body_text)


class TestReferenceHelpers(unittest.TestCase):
    def test_parse_message_ids_keeps_order(self):
        self.assertEqual(parse_message_ids("<a@x>\r\n <b@x>  <c@x>"), ["<a@x>", "<b@x>", "<c@x>"])

    def test_parse_message_ids_without_brackets(self):
        self.assertEqual(parse_message_ids("a@x, b@x"), ["a@x", "b@x"])

    def test_empty_values(self):
        self.assertEqual(parse_message_ids(None), [])
        self.assertIsNone(format_references([]))
        self.assertEqual(split_references(None), [])

    def test_format_and_split(self):
        refs = ["<m1@x>", "<m2@x>"]
        self.assertEqual(format_references(refs), "<m1@x> <m2@x>")
        self.assertEqual(split_references(format_references(refs)), refs)

    def test_synthesize_message_id(self):
        self.assertEqual(synthesize_message_id(3, prefix="sent", domain="d.example"), "<sent-3@d.example>")


if __name__ == "__main__":
    unittest.main()
