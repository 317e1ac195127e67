"""S3-compatible attachment storage using boto3.

Attachments are written at ``{thread_id}/{message_id}/{filename}`` and
referenced from the message row by their public URL. A failed upload drops
that attachment only; the owning message is still stored.
"""

import re
from typing import Any, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from mailsync.config import (
    ATTACHMENT_BUCKET,
    ATTACHMENT_PUBLIC_BASE_URL,
    AWS_REGION,
    S3_ACCESS_KEY,
    S3_ENDPOINT_URL,
    S3_SECRET_KEY,
)
from mailsync.errors import AttachmentUploadError
from mailsync.models.email import AttachmentRef, RawAttachment
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.storage.attachments")

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._@+=-]+")


def _key_component(value: str, default: str) -> str:
    cleaned = _UNSAFE_KEY_CHARS.sub("_", (value or "").strip("<> \t")).strip("._")
    return cleaned or default


def build_storage_key(thread_id: str, message_id: str, filename: str) -> str:
    """Storage key for one attachment ("<a@b>" ids and odd filenames made path-safe)."""
    return "/".join(
        (
            _key_component(thread_id, "thread"),
            _key_component(message_id, "message"),
            _key_component(filename, "attachment"),
        )
    )


class AttachmentStore:
    """Uploads attachment blobs to a bucket and returns retrievable references."""

    def __init__(
        self,
        bucket_name: str = ATTACHMENT_BUCKET,
        client: Any = None,
        endpoint_url: Optional[str] = S3_ENDPOINT_URL,
        region: str = AWS_REGION,
        public_base_url: str = ATTACHMENT_PUBLIC_BASE_URL,
    ):
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.region = region
        self.public_base_url = public_base_url.rstrip("/")
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=S3_ACCESS_KEY,
            aws_secret_access_key=S3_SECRET_KEY,
            region_name=region,
        )
        logger.info(
            "attachment_store.init",
            bucket=bucket_name,
            endpoint=endpoint_url or "aws",
            region=region,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            base = self.public_base_url
        elif self.endpoint_url:
            base = f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}"
        else:
            base = f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com"
        return f"{base}/{quote(key)}"

    def upload(self, attachment: RawAttachment, thread_id: str, message_id: str) -> AttachmentRef:
        """Upload one attachment. Raises AttachmentUploadError on failure."""
        key = build_storage_key(thread_id, message_id, attachment.filename)
        try:
            self._client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=attachment.content,
                ContentType=attachment.content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise AttachmentUploadError(f"Failed to upload {key}: {e}") from e
        logger.debug("attachment_store.uploaded", key=key, size=attachment.size)
        return AttachmentRef(
            name=attachment.filename,
            content_type=attachment.content_type,
            size=attachment.size,
            url=self.public_url(key),
        )

    def store_all(
        self,
        attachments: list[RawAttachment],
        thread_id: str,
        message_id: str,
    ) -> list[dict[str, Any]]:
        """Upload every attachment; failed ones are logged and left out of the result."""
        stored: list[dict[str, Any]] = []
        for attachment in attachments:
            try:
                ref = self.upload(attachment, thread_id, message_id)
            except AttachmentUploadError as e:
                logger.warning(
                    "attachment_store.upload_dropped",
                    thread_id=thread_id,
                    message_id=message_id,
                    filename=attachment.filename,
                    error=str(e),
                )
                continue
            stored.append(ref.model_dump())
        return stored


_default_store: Optional[AttachmentStore] = None


def get_attachment_store() -> AttachmentStore:
    """Process-wide store built from configuration on first use."""
    global _default_store
    if _default_store is None:
        _default_store = AttachmentStore()
    return _default_store
