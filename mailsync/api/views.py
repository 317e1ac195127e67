"""Ticket-shaped JSON views of threads and messages for helpdesk-style consumers."""

from datetime import datetime
from typing import Any, Optional

from mailsync.db.models.thread import EmailMessage, EmailThread


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def thread_to_ticket(thread: EmailThread) -> dict[str, Any]:
    return {
        "id": thread.id,
        "subject": thread.subject,
        "status": thread.status,
        "channel": "email",
        "via": "email",
        "customer": {
            "name": thread.customer_name,
            "email": thread.customer_email,
        },
        "created_datetime": _iso(thread.created_at),
        "updated_datetime": _iso(thread.updated_at),
        "last_message_datetime": _iso(thread.last_message_at),
        "messages_count": thread.message_count,
    }


def message_to_ticket_message(message: EmailMessage) -> dict[str, Any]:
    """One message as a ticket entry; from_agent marks operator-authored mail."""
    return {
        "id": message.id,
        "ticket_id": message.thread_id,
        "message_id": message.message_id,
        "in_reply_to": message.in_reply_to,
        "references": message.references,
        "channel": "email",
        "from_agent": message.from_operator,
        "sender": {
            "name": message.from_name or message.from_email,
            "email": message.from_email,
        },
        "receiver": {"email": message.to_email},
        "subject": message.subject,
        "body_text": message.body_text,
        "body_html": message.body_html,
        "attachments": [
            {
                "url": a.get("url"),
                "name": a.get("name"),
                "content_type": a.get("content_type"),
                "size": a.get("size"),
            }
            for a in (message.attachments or [])
        ],
        "created_datetime": _iso(message.created_at),
        "sent_datetime": _iso(message.created_at),
    }
