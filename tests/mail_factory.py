"""Build raw RFC 5322 messages for tests."""

from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from email.utils import format_datetime
from typing import Optional

OPERATOR = "support@shop.example"
CUSTOMER = "customer@example.com"


def days_ago(days: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)


def build_message(
    message_id: Optional[str] = "<x1@customer>",
    subject: Optional[str] = "Question order",
    from_addr: str = f"Jane Customer <{CUSTOMER}>",
    to_addr: str = f"Shop Support <{OPERATOR}>",
    date: Optional[datetime] = None,
    in_reply_to: Optional[str] = None,
    references: Optional[list[str]] = None,
    body: Optional[str] = "Hello, where is my order?",
    html: Optional[str] = None,
    attachments: tuple = (),
    raw_date: Optional[str] = None,
) -> bytes:
    """attachments: (filename, maintype, subtype, content) tuples."""
    msg = EmailMessage()
    msg["From"] = from_addr
    msg["To"] = to_addr
    if subject is not None:
        msg["Subject"] = subject
    if raw_date is not None:
        msg["Date"] = raw_date
    else:
        msg["Date"] = format_datetime(date or datetime.now(timezone.utc))
    if message_id is not None:
        msg["Message-ID"] = message_id
    if in_reply_to:
        msg["In-Reply-To"] = in_reply_to
    if references:
        msg["References"] = " ".join(references)
    if body is not None:
        msg.set_content(body)
        if html is not None:
            msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")
    for filename, maintype, subtype, content in attachments:
        msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)
    return msg.as_bytes()
