"""DB repositories for threads, messages and the sync cursor."""

from mailsync.db.repositories import message_repo, sync_state_repo, thread_repo

__all__ = ["message_repo", "sync_state_repo", "thread_repo"]
