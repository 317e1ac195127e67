"""IMAP4-over-SSL mailbox reader (imaplib)."""

import imaplib
import re
from typing import Optional

from mailsync.config import (
    IMAP_FOLDER,
    IMAP_HOST,
    IMAP_PASSWORD,
    IMAP_PORT,
    IMAP_TIMEOUT_SECONDS,
    IMAP_USER,
)
from mailsync.errors import MailboxConnectionError, MailSyncError
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.mail_provider.imap")

# (\HasNoChildren \Sent) "/" "Sent Items"
_LIST_LINE = re.compile(r'^\((?P<flags>[^)]*)\)\s+(?:"[^"]*"|NIL)\s+(?P<name>.+)$')

SENT_FOLDER_NAMES = {
    "sent",
    "sent items",
    "sent mail",
    "sent messages",
    "inbox.sent",
    "[gmail]/sent mail",
    "envoyés",
    "éléments envoyés",
    "elements envoyés",
}


def _quote_folder(folder: str) -> str:
    if folder.startswith('"'):
        return folder
    return '"' + folder.replace("\\", "\\\\").replace('"', '\\"') + '"'


def parse_list_response(lines: list) -> list[tuple[str, set[str]]]:
    """Parse LIST response lines into (folder name, flags)."""
    folders = []
    for raw in lines or []:
        if raw is None:
            continue
        line = raw.decode("utf-8", errors="replace") if isinstance(raw, (bytes, bytearray)) else str(raw)
        m = _LIST_LINE.match(line.strip())
        if not m:
            continue
        name = m.group("name").strip()
        if name.startswith('"') and name.endswith('"'):
            name = name[1:-1].replace('\\"', '"').replace("\\\\", "\\")
        flags = {flag.lower() for flag in m.group("flags").split()}
        folders.append((name, flags))
    return folders


class ImapMailbox:
    """Reads one mailbox over IMAPS, addressing messages by UID."""

    def __init__(
        self,
        host: str = IMAP_HOST,
        port: int = IMAP_PORT,
        user: str = IMAP_USER,
        password: str = IMAP_PASSWORD,
        folder: str = IMAP_FOLDER,
        timeout: float = IMAP_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.folder = folder
        self.timeout = timeout
        self._client: Optional[imaplib.IMAP4_SSL] = None

    def __enter__(self) -> "ImapMailbox":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def connect(self) -> None:
        if not self.host:
            raise MailboxConnectionError("IMAP_HOST is not configured")
        try:
            self._client = imaplib.IMAP4_SSL(self.host, self.port, timeout=self.timeout)
            self._client.login(self.user, self._password)
        except (imaplib.IMAP4.error, OSError) as e:
            self._client = None
            raise MailboxConnectionError(f"IMAP connection to {self.host}:{self.port} failed: {e}") from e
        logger.info("imap.connected", host=self.host, user=self.user)
        try:
            self.select(self.folder)
        except Exception:
            self.close()
            raise

    def close(self) -> None:
        if self._client is None:
            return
        try:
            self._client.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug("imap.logout_error", error=str(e))
        finally:
            self._client = None

    @property
    def client(self) -> imaplib.IMAP4_SSL:
        if self._client is None:
            raise MailboxConnectionError("IMAP mailbox is not connected")
        return self._client

    def select(self, folder: str) -> None:
        try:
            typ, data = self.client.select(_quote_folder(folder), readonly=True)
        except (imaplib.IMAP4.abort, OSError) as e:
            raise MailboxConnectionError(f"IMAP select {folder!r} failed: {e}") from e
        except imaplib.IMAP4.error as e:
            raise MailSyncError(f"IMAP select {folder!r} failed: {e}") from e
        if typ != "OK":
            raise MailSyncError(f"IMAP select {folder!r} failed: {data!r}")
        self.folder = folder
        logger.debug("imap.selected", folder=folder, exists=data[0] if data else None)

    def uid_validity(self) -> Optional[int]:
        typ, data = self.client.response("UIDVALIDITY")
        if not data or data[0] is None:
            return None
        try:
            return int(data[0])
        except (TypeError, ValueError):
            return None

    def uids_after(self, last_uid: int) -> list[int]:
        try:
            typ, data = self.client.uid("search", None, f"UID {int(last_uid) + 1}:*")
        except (imaplib.IMAP4.abort, OSError) as e:
            raise MailboxConnectionError(f"IMAP search failed: {e}") from e
        if typ != "OK":
            raise MailSyncError(f"IMAP search failed: {data!r}")
        raw = data[0] if data else b""
        uids = {int(token) for token in (raw or b"").split() if token.isdigit()}
        # "N:*" always includes the highest UID, even when it is below N
        return sorted(uid for uid in uids if uid > last_uid)

    def fetch(self, uid: int) -> bytes:
        try:
            typ, data = self.client.uid("fetch", str(uid), "(BODY.PEEK[])")
        except (imaplib.IMAP4.abort, OSError) as e:
            raise MailboxConnectionError(f"IMAP fetch uid={uid} failed: {e}") from e
        if typ != "OK":
            raise MailSyncError(f"IMAP fetch uid={uid} failed: {data!r}")
        for item in data or []:
            if isinstance(item, tuple) and len(item) >= 2 and isinstance(item[1], (bytes, bytearray)):
                return bytes(item[1])
        raise MailSyncError(f"IMAP fetch uid={uid} returned no message body")

    def find_sent_folder(self) -> Optional[str]:
        typ, data = self.client.list()
        if typ != "OK":
            return None
        folders = parse_list_response(data)
        for name, flags in folders:
            if "\\sent" in flags:
                return name
        for name, _ in folders:
            if name.lower() in SENT_FOLDER_NAMES:
                return name
        logger.warning("imap.sent_folder_not_found", folders=[name for name, _ in folders])
        return None
