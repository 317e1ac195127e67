"""CLI commands: one module per mode (sync, send, threads, serve)."""

from typer import Typer

from mailsync.cli import send_mode, serve_mode, sync_mode, threads_mode
from mailsync.utils.tracing import init_tracing

init_tracing()

app = Typer(help="Mailbox-to-thread sync engine")


def register_commands() -> None:
    """Register all CLI commands on the global app."""
    app.command()(sync_mode.sync)
    app.command(name="sync-sent")(sync_mode.sync_sent_folder)
    app.command()(send_mode.send)
    app.command()(send_mode.reply)
    app.command()(threads_mode.threads)
    app.command(name="init-db")(threads_mode.init_database)
    app.command()(serve_mode.serve)


register_commands()
