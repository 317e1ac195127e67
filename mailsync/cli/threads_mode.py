"""Thread inspection and database setup commands."""

from typing import Optional

import typer

from mailsync.db import get_session, init_db, reset_db
from mailsync.db.models.thread import THREAD_STATUSES
from mailsync.db.repositories import message_repo, sync_state_repo, thread_repo

from .shared import console, logger, print_threads


def threads(
    status: Optional[str] = typer.Option(None, "--status", help="open or closed"),
    limit: int = typer.Option(20, "--limit", "-n", min=1),
    thread_id: Optional[str] = typer.Option(None, "--show", help="Print the messages of one thread"),
) -> None:
    """List threads by most recent activity, or show one thread's messages."""
    with get_session() as session:
        if thread_id:
            thread = thread_repo.get_thread(session, thread_id)
            if thread is None:
                console.print(f"[red]Thread not found: {thread_id}[/red]")
                raise typer.Exit(1)
            console.print(f"[bold]{thread.subject}[/bold] ({thread.status}, {thread.message_count} messages)")
            for m in message_repo.list_messages(session, thread_id):
                who = "[cyan]operator[/cyan]" if m.from_operator else m.from_email
                console.print(f"\n{m.created_at.isoformat()}  {who}  [dim]{m.message_id}[/dim]")
                console.print((m.body_text or "").strip()[:500])
            return
        if status is not None and status not in THREAD_STATUSES:
            console.print(f"[red]Invalid status: {status}[/red]")
            raise typer.Exit(1)
        rows = thread_repo.list_threads(session, status=status, limit=limit)
        print_threads(rows)
    console.print(f"[dim]Sync cursor: last UID {sync_state_repo.get_last_uid()}[/dim]")


def init_database(
    reset: bool = typer.Option(False, "--reset", help="Drop every table first (deletes all data)"),
) -> None:
    """Create the database tables."""
    if reset:
        typer.confirm("Drop all threads, messages and the sync cursor?", abort=True)
        reset_db()
        logger.warning("cli.init_db.reset")
        console.print("[yellow]Database reset.[/yellow]")
        return
    init_db()
    console.print("[green]Database ready.[/green]")
