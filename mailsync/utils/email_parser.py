"""Parse raw RFC 5322 messages into ParsedMessage and (de)serialize reference chains."""

import email
import email.policy
import re
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import getaddresses, parsedate_to_datetime
from typing import Optional

from mailsync.config import MESSAGE_ID_DOMAIN, NO_SUBJECT_PLACEHOLDER, OPERATOR_EMAIL
from mailsync.errors import MessageParseError
from mailsync.models.email import ParsedMessage, RawAttachment
from mailsync.utils.body_sanitizer import html_body_to_text
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.parser")

_MSG_ID_PATTERN = re.compile(r"<[^<>\s]+>")


def synthesize_message_id(uid: int, prefix: str = "generated", domain: str = MESSAGE_ID_DOMAIN) -> str:
    """Deterministic Message-ID for a message that has none (same uid -> same id)."""
    return f"<{prefix}-{uid}@{domain}>"


def parse_message_ids(value: Optional[str]) -> list[str]:
    """Split a header value into message identifiers, keeping header order."""
    if not value:
        return []
    found = _MSG_ID_PATTERN.findall(value)
    if found:
        return found
    # Some agents omit the angle brackets
    return [token for token in re.split(r"[\s,]+", value.strip()) if token]


def format_references(references: list[str]) -> Optional[str]:
    """Serialize an ordered reference list to the header/storage string form."""
    return " ".join(references) if references else None


def split_references(value: Optional[str]) -> list[str]:
    """Inverse of format_references."""
    return value.split() if value else []


def _header(msg: EmailMessage, name: str) -> str:
    value = msg.get(name)
    return str(value).strip() if value is not None else ""


def _first_address(header_value: str) -> tuple[str, str]:
    """Return (name, address) of the first mailbox in an address header."""
    for name, address in getaddresses([header_value]):
        if address:
            return (name or "").strip(), address.strip()
    return "", ""


def _parse_date(value: str) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.debug("parser.date_unparseable", raw_date=value)
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _decode_text(part: EmailMessage) -> str:
    try:
        content = part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return content


def _is_attachment(part: EmailMessage) -> bool:
    disposition = part.get_content_disposition()
    if disposition == "attachment":
        return True
    if part.get_filename() and part.get_content_maintype() != "text":
        return True
    return False


def _extract_parts(msg: EmailMessage) -> tuple[Optional[str], Optional[str], list[RawAttachment]]:
    body_text: Optional[str] = None
    body_html: Optional[str] = None
    attachments: list[RawAttachment] = []

    for part in msg.walk():
        if part.is_multipart():
            continue
        if _is_attachment(part):
            attachments.append(
                RawAttachment(
                    filename=part.get_filename() or "attachment",
                    content_type=part.get_content_type() or "application/octet-stream",
                    content=part.get_payload(decode=True) or b"",
                )
            )
            continue
        content_type = part.get_content_type()
        if content_type == "text/plain" and body_text is None:
            body_text = _decode_text(part)
        elif content_type == "text/html" and body_html is None:
            body_html = _decode_text(part)

    return body_text, body_html, attachments


def parse_message(
    raw: bytes,
    uid: Optional[int] = None,
    operator_email: str = OPERATOR_EMAIL,
    missing_id_prefix: str = "generated",
) -> ParsedMessage:
    """Parse raw message bytes fetched from the mailbox at the given UID."""
    try:
        msg = email.message_from_bytes(raw, policy=email.policy.default)
    except Exception as e:
        raise MessageParseError(f"Invalid MIME message (uid={uid}): {e}") from e

    ids = parse_message_ids(_header(msg, "Message-ID"))
    if ids:
        message_id = ids[0]
    elif uid is not None:
        message_id = synthesize_message_id(uid, prefix=missing_id_prefix)
        logger.warning("parser.message_id_missing", uid=uid, synthesized=message_id)
    else:
        raise MessageParseError("Message has no Message-ID and no UID to derive one from")

    in_reply_to_ids = parse_message_ids(_header(msg, "In-Reply-To"))
    references = parse_message_ids(_header(msg, "References"))

    from_name, from_email = _first_address(_header(msg, "From"))
    to_name, to_email = _first_address(_header(msg, "To"))
    from_email = from_email.lower()
    to_email = to_email.lower()

    from_operator = bool(from_email) and from_email == operator_email.lower()
    if from_operator:
        counterparty_email = to_email
        counterparty_name = to_name or to_email
    else:
        counterparty_email = from_email
        counterparty_name = from_name or from_email

    body_text, body_html, attachments = _extract_parts(msg)
    if body_text is None and body_html:
        body_text = html_body_to_text(body_html)

    return ParsedMessage(
        message_id=message_id,
        in_reply_to=in_reply_to_ids[0] if in_reply_to_ids else None,
        references=references,
        from_email=from_email,
        from_name=from_name or None,
        to_email=to_email,
        to_name=to_name or None,
        subject=_header(msg, "Subject") or NO_SUBJECT_PLACEHOLDER,
        body_text=body_text,
        body_html=body_html,
        from_operator=from_operator,
        counterparty_email=counterparty_email,
        counterparty_name=counterparty_name,
        date=_parse_date(_header(msg, "Date")),
        uid=uid,
        attachments=attachments,
    )
