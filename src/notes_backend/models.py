from __future__ import annotations

from typing import TypedDict


# PUBLIC_INTERFACE
class Note(TypedDict):
    """
    A short text note as persisted by the key-value backends.

    Fields:
    - id: Opaque unique string token, immutable after creation
    - content: Non-empty text (trimmed on the way in by the store)
    - created_at: Creation timestamp, integer milliseconds since epoch
    - updated_at: Last content/completion change, integer milliseconds since epoch
    - done: Completion flag, always materialized as a bool
    """

    id: str
    content: str
    created_at: int
    updated_at: int
    done: bool
