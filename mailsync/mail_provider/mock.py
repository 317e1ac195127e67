"""In-memory mailbox and sender: messages from a dict or a directory of <uid>.eml files."""

from email.message import EmailMessage
from pathlib import Path
from typing import Optional

from mailsync.config import IMAP_FOLDER
from mailsync.errors import MailboxConnectionError, MailSendError, MailSyncError
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.mail_provider.mock")


class MockMailbox:
    """Mailbox backed by {folder: {uid: raw bytes}}.

    fail_connect makes entering the context raise MailboxConnectionError.
    fail_on is a set of UIDs whose fetch raises MailSyncError; disconnect_on
    is a set of UIDs whose fetch raises MailboxConnectionError.
    """

    def __init__(
        self,
        messages: Optional[dict[int, bytes]] = None,
        folder: str = IMAP_FOLDER,
        folders: Optional[dict[str, dict[int, bytes]]] = None,
        sent_folder: Optional[str] = None,
        uid_validity: int = 1,
        fail_connect: bool = False,
        fail_on: Optional[set[int]] = None,
        disconnect_on: Optional[set[int]] = None,
    ):
        self.folders: dict[str, dict[int, bytes]] = {k: dict(v) for k, v in (folders or {}).items()}
        self.folders.setdefault(folder, dict(messages or {}))
        self.default_folder = folder
        self.folder = folder
        self.sent_folder = sent_folder
        self._uid_validity = uid_validity
        self.fail_connect = fail_connect
        self.fail_on = set(fail_on or ())
        self.disconnect_on = set(disconnect_on or ())
        self.connected = False
        self.fetched: list[int] = []

    @classmethod
    def from_directory(cls, path: Path, **kwargs) -> "MockMailbox":
        """Load every <uid>.eml file in path into the default folder."""
        messages: dict[int, bytes] = {}
        path = Path(path)
        if not path.exists():
            logger.warning("mock_mailbox.directory_missing", path=str(path))
        else:
            for eml in sorted(path.glob("*.eml")):
                if not eml.stem.isdigit():
                    logger.debug("mock_mailbox.skip_file", file=eml.name)
                    continue
                messages[int(eml.stem)] = eml.read_bytes()
        logger.info("mock_mailbox.loaded", path=str(path), message_count=len(messages))
        return cls(messages=messages, **kwargs)

    def add(self, uid: int, raw: bytes, folder: Optional[str] = None) -> None:
        self.folders.setdefault(folder or self.default_folder, {})[uid] = raw

    def __enter__(self) -> "MockMailbox":
        if self.fail_connect:
            raise MailboxConnectionError("mock mailbox refused connection")
        self.connected = True
        try:
            self.select(self.default_folder)
        except MailSyncError:
            self.connected = False
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.connected = False

    def _require_connection(self) -> None:
        if not self.connected:
            raise MailboxConnectionError("mock mailbox is not connected")

    def select(self, folder: str) -> None:
        self._require_connection()
        if folder not in self.folders:
            raise MailSyncError(f"No such folder: {folder}")
        self.folder = folder

    def uid_validity(self) -> Optional[int]:
        return self._uid_validity

    def uids_after(self, last_uid: int) -> list[int]:
        self._require_connection()
        return sorted(uid for uid in self.folders[self.folder] if uid > last_uid)

    def fetch(self, uid: int) -> bytes:
        self._require_connection()
        if uid in self.disconnect_on:
            self.connected = False
            raise MailboxConnectionError(f"mock mailbox dropped connection at uid={uid}")
        if uid in self.fail_on:
            raise MailSyncError(f"mock fetch failure at uid={uid}")
        self.fetched.append(uid)
        return self.folders[self.folder][uid]

    def find_sent_folder(self) -> Optional[str]:
        if self.sent_folder and self.sent_folder in self.folders:
            return self.sent_folder
        for name in self.folders:
            if name.lower() in ("sent", "sent items", "sent mail"):
                return name
        return None


class MockSender:
    """Records outgoing messages; optionally writes each to outbox_dir as <n>.eml."""

    def __init__(self, outbox_dir: Optional[Path] = None, fail: bool = False):
        self.outbox_dir = Path(outbox_dir) if outbox_dir else None
        self.fail = fail
        self.sent: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise MailSendError("mock sender failure")
        self.sent.append(message)
        if self.outbox_dir is not None:
            self.outbox_dir.mkdir(parents=True, exist_ok=True)
            out = self.outbox_dir / f"{len(self.sent)}.eml"
            out.write_bytes(message.as_bytes())
        logger.info(
            "mock_sender.sent",
            to=message.get("To"),
            message_id=message.get("Message-ID"),
            count=len(self.sent),
        )

    @property
    def last(self) -> Optional[EmailMessage]:
        return self.sent[-1] if self.sent else None
