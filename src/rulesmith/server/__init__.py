"""HTTP/WebSocket server for Rulesmith."""

from .app import create_app

__all__ = ["create_app"]
