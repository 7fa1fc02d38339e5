"""Smart intake API routes."""

from . import drafts, smart_input, system

__all__ = ["drafts", "smart_input", "system"]
