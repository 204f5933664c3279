"""
Persistence for interview sessions.
"""

from .session_store import (
    SessionStore,
    InMemorySessionStore,
    JsonSessionStore,
    DebouncedSessionWriter,
    session_id_for,
)

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "JsonSessionStore",
    "DebouncedSessionWriter",
    "session_id_for",
]
