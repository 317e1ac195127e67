"""Sync mode: import new inbox mail, or operator replies from the Sent folder."""

from pathlib import Path
from typing import Optional

import typer

from mailsync.errors import MailboxConnectionError, MailSyncError
from mailsync.orchestrator import sync_inbox, sync_sent

from .shared import console, get_mailbox, logger


def sync(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Max messages this run"),
    eml_dir: Optional[Path] = typer.Option(
        None,
        "--eml-dir",
        help="Read <uid>.eml files from this directory instead of IMAP",
        exists=True,
        file_okay=False,
    ),
    all_batches: bool = typer.Option(False, "--all", help="Repeat until no messages remain"),
) -> None:
    """Import new messages above the sync cursor into threads."""
    log = logger.bind(command="sync", limit=limit)
    log.info("cli.sync.start")
    total_processed = total_errors = 0
    while True:
        try:
            result = sync_inbox(mailbox=get_mailbox(eml_dir), limit=limit)
        except MailboxConnectionError as e:
            console.print(f"[red]Mailbox connection failed: {e}[/red]")
            raise typer.Exit(2)
        except MailSyncError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        total_processed += result.processed
        total_errors += result.errors
        if result.done or not all_batches:
            break
    style = "yellow" if total_errors else "green"
    console.print(f"[{style}]Processed {total_processed} message(s), {total_errors} error(s)[/{style}]")
    if not result.done:
        console.print("[dim]More messages pending; run again or use --all.[/dim]")


def sync_sent_folder(
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Sent folder (auto-detected if omitted)"),
    eml_dir: Optional[Path] = typer.Option(
        None,
        "--eml-dir",
        help="Read <uid>.eml files from this directory as the Sent folder",
        exists=True,
        file_okay=False,
    ),
) -> None:
    """Attach replies sent from other mail clients to their threads."""
    mailbox = get_mailbox(eml_dir)
    if eml_dir is not None:
        folder = folder or mailbox.default_folder
    try:
        result = sync_sent(mailbox=mailbox, folder=folder)
    except MailboxConnectionError as e:
        console.print(f"[red]Mailbox connection failed: {e}[/red]")
        raise typer.Exit(2)
    except MailSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(
        f"[green]Imported {result.processed} sent message(s)[/green], "
        f"{result.skipped} without a thread, {result.errors} error(s)"
    )
