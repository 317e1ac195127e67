"""Utility modules."""

from mailsync.utils.body_sanitizer import HTML_TO_TEXT_PIPELINE, html_body_to_text
from mailsync.utils.email_parser import parse_message, synthesize_message_id
from mailsync.utils.logger import get_logger
from mailsync.utils.tracing import init_tracing

__all__ = [
    "HTML_TO_TEXT_PIPELINE",
    "html_body_to_text",
    "parse_message",
    "synthesize_message_id",
    "get_logger",
    "init_tracing",
]
