"""Resolve which existing thread an incoming message belongs to.

Strategies are tried in order and the first hit wins:

1. in_reply_to  - a stored message has Message-ID == In-Reply-To
2. references   - walk References newest to oldest, first stored hit
3. subject      - stripped subject equals a thread subject whose last
                  activity is inside the recency window; most recent wins

No hit means the caller creates a new thread. The subject tier can merge
two unrelated conversations that share a subject inside the window; that
trade-off is accepted in exchange for catching clients that drop threading
headers.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional

from sqlalchemy.orm import Session

from mailsync.config import SUBJECT_MATCH_WINDOW_DAYS
from mailsync.db.repositories import message_repo, thread_repo
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.thread_resolver")

# Reply/forward markers in several languages: Re, Fwd/Fw, TR (fr), AW/WG (de),
# SV/VS (nordic), RV/RIF (es/it), Antw (nl), Réf, Enc (pt), Odp (pl), Res.
# Optional counter as in "Re[2]:" or "Re(2):".
_PREFIX_PATTERN = re.compile(
    r"^\s*(?:re|fwd?|tr|aw|wg|sv|vs|rv|rif|antw|r[ée]f|enc|odp|res)\s*(?:[\[(]\d+[\])])?\s*:\s*",
    re.IGNORECASE,
)


def strip_subject_prefixes(subject: Optional[str]) -> str:
    """Remove all leading reply/forward prefixes ("Re: Fwd: X" -> "X")."""
    text = (subject or "").strip()
    while True:
        stripped = _PREFIX_PATTERN.sub("", text, count=1)
        if stripped == text:
            return text.strip()
        text = stripped


@dataclass(frozen=True)
class ThreadCandidate:
    """Header fields of a message awaiting thread resolution."""

    message_id: str
    subject: str
    in_reply_to: Optional[str] = None
    references: tuple[str, ...] = field(default_factory=tuple)


class Resolution(NamedTuple):
    thread_id: str
    strategy: str


Strategy = Callable[[Session, ThreadCandidate, datetime], Optional[str]]


def match_in_reply_to(session: Session, candidate: ThreadCandidate, now: datetime) -> Optional[str]:
    if not candidate.in_reply_to:
        return None
    return message_repo.find_thread_id_by_message_id(session, candidate.in_reply_to)


def match_references(session: Session, candidate: ThreadCandidate, now: datetime) -> Optional[str]:
    for ref in reversed(candidate.references):
        thread_id = message_repo.find_thread_id_by_message_id(session, ref)
        if thread_id:
            return thread_id
    return None


def make_subject_matcher(window: timedelta) -> Strategy:
    """Build the subject fallback for a given recency window."""

    def match_subject(session: Session, candidate: ThreadCandidate, now: datetime) -> Optional[str]:
        stripped = strip_subject_prefixes(candidate.subject)
        if not stripped:
            return None
        return thread_repo.find_recent_thread_by_subject(session, stripped, since=now - window)

    return match_subject


def default_strategies(window_days: int = SUBJECT_MATCH_WINDOW_DAYS) -> list[tuple[str, Strategy]]:
    return [
        ("in_reply_to", match_in_reply_to),
        ("references", match_references),
        ("subject", make_subject_matcher(timedelta(days=window_days))),
    ]


class ThreadResolver:
    """Ordered list of (name, strategy) pairs; first strategy returning a thread id wins."""

    def __init__(
        self,
        strategies: Optional[list[tuple[str, Strategy]]] = None,
        subject_window_days: int = SUBJECT_MATCH_WINDOW_DAYS,
    ):
        self.strategies = strategies if strategies is not None else default_strategies(subject_window_days)

    def resolve(
        self,
        session: Session,
        candidate: ThreadCandidate,
        now: Optional[datetime] = None,
    ) -> Optional[Resolution]:
        """Return the matching thread, or None when a new thread must be created."""
        now = now or datetime.now(timezone.utc)
        for name, strategy in self.strategies:
            thread_id = strategy(session, candidate, now)
            if thread_id:
                logger.debug(
                    "thread_resolver.matched",
                    message_id=candidate.message_id,
                    strategy=name,
                    thread_id=thread_id,
                )
                return Resolution(thread_id=thread_id, strategy=name)
        logger.debug("thread_resolver.no_match", message_id=candidate.message_id)
        return None
