"""SMTP-over-SSL sender (smtplib)."""

import smtplib
from email.message import EmailMessage

from mailsync.config import (
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_TIMEOUT_SECONDS,
    SMTP_USER,
)
from mailsync.errors import MailSendError
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.mail_provider.smtp")


class SmtpSender:
    """Submits one message per connection; no queueing or retries."""

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        user: str = SMTP_USER,
        password: str = SMTP_PASSWORD,
        timeout: float = SMTP_TIMEOUT_SECONDS,
    ):
        self.host = host
        self.port = port
        self.user = user
        self._password = password
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        if not self.host:
            raise MailSendError("SMTP_HOST is not configured")
        try:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
                if self.user:
                    smtp.login(self.user, self._password)
                refused = smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "smtp.send_failed",
                to=message.get("To"),
                message_id=message.get("Message-ID"),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise MailSendError(f"SMTP send failed: {e}") from e
        if refused:
            logger.warning("smtp.recipients_refused", refused=list(refused))
        logger.info("smtp.sent", to=message.get("To"), message_id=message.get("Message-ID"))
