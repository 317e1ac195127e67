"""Plain-text derivation for HTML-only email bodies.

Stored messages always carry a text body; when a sender only supplies HTML,
the parser runs it through HTML_TO_TEXT_PIPELINE. Each step is a plain
str -> str function so callers can build their own pipeline.
"""

import html
import re
from typing import Callable

from bs4 import BeautifulSoup

Sanitizer = Callable[[str], str]

_INVISIBLE = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
_LINE_BREAKS = re.compile(r"\r\n?")
_HSPACE = re.compile(r"[^\S\n]+")
_EXTRA_BLANKS = re.compile(r"\n{3,}")

_DROP_TAGS = ("script", "style", "head", "title", "meta", "link", "noscript")
_BLOCK_TAGS = ("p", "div", "tr", "table", "blockquote", "section", "article", "ul", "ol")
_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")


def decode_special_characters(text: str) -> str:
    """Drop invisible characters, turn NBSP into a space and use \\n line endings."""
    text = _INVISIBLE.sub("", text)
    return _LINE_BREAKS.sub("\n", text).replace("\u00a0", " ")


def html_to_text(text: str) -> str:
    if not text.strip():
        return text

    soup = BeautifulSoup(text, "lxml")
    for el in soup(_DROP_TAGS):
        el.decompose()

    for br in soup("br"):
        br.replace_with("\n")
    for li in soup("li"):
        li.insert_before("\n- ")
    for tag in soup(_BLOCK_TAGS):
        tag.insert_before("\n")
        tag.insert_after("\n")
    for tag in soup(_HEADING_TAGS):
        tag.insert_before("\n\n")
        tag.insert_after("\n\n")

    return html.unescape(soup.get_text())


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces, trim each line, keep at most one blank line."""
    lines = (_HSPACE.sub(" ", line).strip() for line in text.split("\n"))
    return _EXTRA_BLANKS.sub("\n\n", "\n".join(lines)).strip()


HTML_TO_TEXT_PIPELINE: list[Sanitizer] = [
    decode_special_characters,
    html_to_text,
    normalize_whitespace,
]


def html_body_to_text(raw_html: str, pipeline: list[Sanitizer] | None = None) -> str:
    if not raw_html:
        return ""
    text = raw_html
    for step in pipeline or HTML_TO_TEXT_PIPELINE:
        text = step(text)
    return text
