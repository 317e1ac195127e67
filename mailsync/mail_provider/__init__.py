"""Mail provider: IMAP mailbox reader, SMTP sender, and in-memory mocks."""

from mailsync.mail_provider.protocol import MailSender, Mailbox
from mailsync.mail_provider.imap_mailbox import ImapMailbox
from mailsync.mail_provider.smtp_sender import SmtpSender
from mailsync.mail_provider.mock import MockMailbox, MockSender

__all__ = [
    "Mailbox",
    "MailSender",
    "ImapMailbox",
    "SmtpSender",
    "MockMailbox",
    "MockSender",
]
