"""HTTP API: FastAPI app with sync and thread routers."""

from mailsync.api.server import create_app

__all__ = ["create_app"]
