"""Shared route dependencies."""

from fastapi import Header


def current_user(x_user_id: str = Header(..., min_length=1)) -> str:
    """Caller identity from the X-User-Id header."""
    return x_user_id
