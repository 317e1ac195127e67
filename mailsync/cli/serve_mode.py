"""Serve mode: run the HTTP API with uvicorn."""

import sys

import typer
import uvicorn

from mailsync.api.server import create_app
from mailsync.config import API_PORT
from mailsync.db import init_db

from .shared import console, logger


def serve(
    port: int = typer.Option(API_PORT, "--port", "-p", help="Port for the API server"),
    host: str = typer.Option("0.0.0.0", "--host", "-h", help="Bind host"),
) -> None:
    """Start the HTTP API (sync, threads, replies)."""
    init_db()
    logger.bind(command="serve", port=port).info("serve.start")
    app = create_app()
    console.print(f"[green]Starting API server on http://{host}:{port}[/green]")
    console.print("[dim]Endpoints: POST /mail/sync, POST /mail/sync-sent, /threads, GET /health[/dim]")
    try:
        uvicorn.run(app, host=host, port=port, log_level="info", timeout_graceful_shutdown=15)
    except KeyboardInterrupt:
        console.print("\n[dim]Shutting down...[/dim]")
        sys.exit(0)
