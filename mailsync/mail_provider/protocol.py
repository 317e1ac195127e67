"""Mail provider protocols: a UID-addressed mailbox and an outbound sender."""

from email.message import EmailMessage
from typing import Optional, Protocol


class Mailbox(Protocol):
    """Single-mailbox reader. Used as a context manager: enter connects, exit logs out.

    Entering raises MailboxConnectionError when the server is unreachable or
    refuses the credentials.
    """

    def __enter__(self) -> "Mailbox":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...

    def select(self, folder: str) -> None:
        """Open a folder read-only; later calls operate on it."""
        ...

    def uid_validity(self) -> Optional[int]:
        """UIDVALIDITY of the selected folder, if the server reports it."""
        ...

    def uids_after(self, last_uid: int) -> list[int]:
        """UIDs strictly greater than last_uid in the selected folder, ascending."""
        ...

    def fetch(self, uid: int) -> bytes:
        """Raw RFC 5322 bytes of one message (does not set \\Seen)."""
        ...

    def find_sent_folder(self) -> Optional[str]:
        """Name of the folder holding sent mail, if one can be identified."""
        ...


class MailSender(Protocol):
    """Outbound submission."""

    def send(self, message: EmailMessage) -> None:
        """Submit the message. Raises MailSendError on any failure."""
        ...
