"""HTTP transport for the whisper core."""

from .app import create_app

__all__ = ["create_app"]
