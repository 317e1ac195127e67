"""Database package.

One process-wide engine, created lazily. SQLite connections get a busy
timeout and foreign keys switched on; the API and CLI both call into the
repositories from worker threads, so the same connection pool is shared.
"""

import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from mailsync.config import DATABASE_URL
from mailsync.db.base import Base

# Registers every table on Base.metadata
from mailsync.db.models import EmailMessage, EmailThread, SyncState  # noqa: F401

_lock = threading.Lock()
_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def _enable_sqlite_pragmas(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def _build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    engine = create_engine(url, connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _enable_sqlite_pragmas)
    return engine


def init_db() -> None:
    """Create the engine and any missing tables. Repeat calls do nothing."""
    global _engine, _session_factory
    with _lock:
        if _session_factory is not None:
            return
        _engine = _build_engine(DATABASE_URL)
        Base.metadata.create_all(bind=_engine)
        _session_factory = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=False)


def reset_db() -> None:
    """Drop and recreate all tables (threads, messages and the sync cursor)."""
    init_db()
    Base.metadata.drop_all(bind=_engine)
    Base.metadata.create_all(bind=_engine)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Unit of work: commit on clean exit, roll back and re-raise otherwise."""
    init_db()
    with _session_factory() as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()
