"""Blob storage for message attachments."""

from mailsync.storage.attachment_store import AttachmentStore, build_storage_key, get_attachment_store

__all__ = ["AttachmentStore", "build_storage_key", "get_attachment_store"]
