"""Shared CLI helpers: console, logger, mailbox/sender selection, result printing."""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from mailsync.mail_provider import ImapMailbox, MockMailbox, MockSender, SmtpSender
from mailsync.mail_provider.protocol import MailSender, Mailbox
from mailsync.utils.logger import get_logger

console = Console()
logger = get_logger("mailsync.cli")


def get_mailbox(eml_dir: Optional[Path] = None) -> Mailbox:
    """IMAP mailbox from configuration, or a mock loaded from <uid>.eml files."""
    if eml_dir is not None:
        return MockMailbox.from_directory(eml_dir)
    return ImapMailbox()


def get_sender(outbox_dir: Optional[Path] = None) -> MailSender:
    """SMTP sender from configuration, or a mock writing .eml files to outbox_dir."""
    if outbox_dir is not None:
        return MockSender(outbox_dir=outbox_dir)
    return SmtpSender()


def print_threads(threads) -> None:
    table = Table(title="Threads")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Status")
    table.add_column("Customer")
    table.add_column("Subject")
    table.add_column("Msgs", justify="right")
    table.add_column("Last message")
    for t in threads:
        status = "[green]open[/green]" if t.status == "open" else "[dim]closed[/dim]"
        table.add_row(
            t.id,
            status,
            t.customer_email,
            t.subject,
            str(t.message_count),
            t.last_message_at.isoformat() if t.last_message_at else "",
        )
    console.print(table)
