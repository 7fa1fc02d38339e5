"""HTTP API for the smart intake service."""

from .server import create_app

__all__ = ["create_app"]
