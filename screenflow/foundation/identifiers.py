"""ID generation for screen sessions."""

from __future__ import annotations

from uuid import uuid4


def new_session_id() -> str:
    """Generate a random UUID v4 string, stable across the wire."""
    return str(uuid4())
