"""
Notes backend package.

A persisted store for short text notes over a whole-value key-value backend,
plus a FastAPI service exposing it. The app lives in ``notes_backend.main``.
"""

from .backends import InMemoryBackend, KeyValueBackend, SQLiteBackend, get_backend
from .ids import generate_id
from .models import Note
from .store import NoteStore

__all__ = [
    "InMemoryBackend",
    "KeyValueBackend",
    "Note",
    "NoteStore",
    "SQLiteBackend",
    "generate_id",
    "get_backend",
]
