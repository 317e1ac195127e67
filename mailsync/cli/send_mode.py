"""Send mode: reply on a thread or start a new conversation."""

from pathlib import Path
from typing import Optional

import typer

from mailsync.composer import create_thread_and_send, send_reply
from mailsync.errors import MailSendError, ThreadNotFoundError
from mailsync.models.email import ReplyRequest

from .shared import console, get_sender, logger


def _read_body(body: Optional[str], body_file: Optional[Path]) -> str:
    if body_file is not None:
        return body_file.read_text(encoding="utf-8")
    return body or ""


def reply(
    thread_id: str = typer.Argument(..., help="Thread to reply on"),
    to: str = typer.Option(..., "--to", help="Recipient address"),
    subject: str = typer.Option(..., "--subject", "-s"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Plain-text body"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", exists=True, dir_okay=False),
    html: Optional[Path] = typer.Option(None, "--html", exists=True, dir_okay=False, help="HTML body file"),
    to_name: Optional[str] = typer.Option(None, "--to-name"),
    outbox: Optional[Path] = typer.Option(None, "--outbox", help="Write .eml files here instead of SMTP"),
) -> None:
    """Reply on an existing thread (threading headers set from the stored chain)."""
    request = ReplyRequest(
        to=to,
        to_name=to_name,
        subject=subject,
        body_text=_read_body(body, body_file),
        body_html=html.read_text(encoding="utf-8") if html else "",
    )
    try:
        message_id = send_reply(thread_id, request, sender=get_sender(outbox))
    except ThreadNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except MailSendError as e:
        console.print(f"[red]Send failed: {e}[/red]")
        raise typer.Exit(2)
    logger.info("cli.reply.sent", thread_id=thread_id, message_id=message_id)
    console.print(f"[green]Sent {message_id}[/green]")


def send(
    to: str = typer.Option(..., "--to", help="Recipient address"),
    subject: str = typer.Option(..., "--subject", "-s"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Plain-text body"),
    body_file: Optional[Path] = typer.Option(None, "--body-file", exists=True, dir_okay=False),
    html: Optional[Path] = typer.Option(None, "--html", exists=True, dir_okay=False, help="HTML body file"),
    to_name: Optional[str] = typer.Option(None, "--to-name"),
    outbox: Optional[Path] = typer.Option(None, "--outbox", help="Write .eml files here instead of SMTP"),
) -> None:
    """Start a new conversation: send, then create its thread."""
    request = ReplyRequest(
        to=to,
        to_name=to_name,
        subject=subject,
        body_text=_read_body(body, body_file),
        body_html=html.read_text(encoding="utf-8") if html else "",
    )
    try:
        result = create_thread_and_send(request, sender=get_sender(outbox))
    except MailSendError as e:
        console.print(f"[red]Send failed: {e}[/red]")
        raise typer.Exit(2)
    console.print(f"[green]Sent {result.message_id}[/green] (thread {result.thread_id})")
