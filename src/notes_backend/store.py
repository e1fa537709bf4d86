"""
Note store: the single owner of the persisted note collection.

The whole collection lives under one key of a whole-value key-value backend.
Every mutation reads the full collection, computes the next full collection
and writes it back, so each call costs O(n) in the collection size. That is
fine for a personal notes list and is the scaling ceiling of this design.

Without ``serialize_writes`` two concurrent mutations both read the same
collection and the later write wins. With it, mutations run one at a time
through a lock owned by the store instance.
"""
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable, List, Mapping, Optional

from .backends import KeyValueBackend
from .errors import (
    BackendUnavailableError,
    CorruptCollectionError,
    DuplicateIdError,
    EmptyContentError,
    InputValidationError,
    NoteNotFoundError,
    StructuralValidationError,
)
from .ids import generate_id
from .models import Note

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "notes"


def now_ms() -> int:
    return int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# PUBLIC_INTERFACE
def is_valid_note(obj: Any) -> bool:
    """Return True if obj has the Note shape; `done` may be absent."""
    return (
        isinstance(obj, Mapping)
        and isinstance(obj.get("id"), str)
        and isinstance(obj.get("content"), str)
        and _is_number(obj.get("created_at"))
        and _is_number(obj.get("updated_at"))
        and ("done" not in obj or isinstance(obj["done"], bool))
    )


# PUBLIC_INTERFACE
def assert_notes_list(value: Any, scene: str = "validation", error=StructuralValidationError) -> None:
    """Raise `error` unless value is a list whose every element is a valid note."""
    if not isinstance(value, list):
        raise error(f"{scene} failed: stored value is not a list")
    if not all(is_valid_note(n) for n in value):
        raise error(f"{scene} failed: collection contains a malformed note")


# PUBLIC_INTERFACE
def normalize_note(note: Mapping[str, Any]) -> Note:
    """Return a validated copy of note with `done` materialized as a bool."""
    if not is_valid_note(note):
        raise StructuralValidationError("validation failed: malformed note")
    normalized = dict(note)
    normalized["done"] = bool(note.get("done", False))
    return normalized  # type: ignore[return-value]


# PUBLIC_INTERFACE
def sort_notes(notes: Iterable[Note]) -> List[Note]:
    """Incomplete notes first, then complete; most recently updated first within each group."""
    return sorted(notes, key=lambda n: (n["done"], -n["updated_at"]))


def _require_id(note_id: Any, scene: str) -> None:
    if not isinstance(note_id, str) or not note_id:
        raise InputValidationError(f"{scene} failed: id must be a non-empty string")


def _require_content(content: Any, scene: str) -> str:
    if not isinstance(content, str) or not content.strip():
        raise EmptyContentError(f"{scene} failed: content must not be empty")
    return content.strip()


def _find_index(notes: List[Note], note_id: str) -> int:
    for i, n in enumerate(notes):
        if n["id"] == note_id:
            return i
    return -1


# PUBLIC_INTERFACE
class NoteStore:
    """
    Create/read/update/delete/toggle notes over a KeyValueBackend.

    Args:
        backend: Persistence backend. None means no backend is present and every
            operation raises BackendUnavailableError.
        storage_key: Key holding the note collection.
        clock: Zero-argument callable returning integer milliseconds since epoch.
        serialize_writes: Run mutating operations one at a time.
    """

    def __init__(
        self,
        backend: Optional[KeyValueBackend],
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Optional[Callable[[], int]] = None,
        serialize_writes: bool = False,
    ) -> None:
        self._backend = backend
        self._key = storage_key
        self._clock = clock or now_ms
        self._write_lock = asyncio.Lock() if serialize_writes else None

    @property
    def backend(self) -> KeyValueBackend:
        if self._backend is None:
            raise BackendUnavailableError("storage backend unavailable: configure one or inject a test double")
        return self._backend

    def _now(self) -> int:
        return int(self._clock())

    @asynccontextmanager
    async def _writing(self) -> AsyncIterator[None]:
        if self._write_lock is None:
            yield
            return
        async with self._write_lock:
            yield

    async def _save(self, notes: Iterable[Mapping[str, Any]]) -> List[Note]:
        ordered = sort_notes(normalize_note(n) for n in notes)
        await self.backend.set({self._key: ordered})
        return ordered

    async def list_notes(self) -> List[Note]:
        """Return every note, incomplete first and most recently updated first."""
        res = await self.backend.get({self._key: []})
        stored = res.get(self._key)
        if stored is None:
            stored = []
        assert_notes_list(stored, "read", error=CorruptCollectionError)
        return sort_notes(normalize_note(n) for n in stored)

    async def get_note(self, note_id: str) -> Note:
        _require_id(note_id, "get")
        for n in await self.list_notes():
            if n["id"] == note_id:
                return n
        raise NoteNotFoundError(f"get failed: no note with id '{note_id}'")

    async def replace_all(self, notes: List[Mapping[str, Any]]) -> None:
        """Overwrite the whole collection with notes. Callers wanting partial changes pass the full result."""
        assert_notes_list(notes, "write")
        ids = [n["id"] for n in notes]
        if len(set(ids)) != len(ids):
            raise DuplicateIdError("write failed: collection contains duplicate ids")
        async with self._writing():
            await self._save(notes)
        logger.info(f"Replaced note collection ({len(notes)} notes)")

    async def create_note(self, note: Mapping[str, Any]) -> Note:
        """
        Insert a new note.

        Missing `id`, `created_at`/`updated_at` and `done` are filled in with a
        generated id, the current time and False respectively. An id that is
        already present is rejected; nothing is overwritten.
        """
        if not isinstance(note, Mapping):
            raise InputValidationError("create failed: note must be a mapping")
        content = _require_content(note.get("content"), "create")
        now = self._now()
        candidate = dict(note)
        candidate["content"] = content
        candidate.setdefault("id", generate_id())
        candidate.setdefault("created_at", now)
        candidate.setdefault("updated_at", candidate["created_at"])
        if candidate.get("done") is None:
            candidate["done"] = False
        created = normalize_note(candidate)

        async with self._writing():
            current = await self.list_notes()
            if _find_index(current, created["id"]) != -1:
                raise DuplicateIdError(f"create failed: id '{created['id']}' already exists")
            await self._save([*current, created])
        logger.debug(f"Created note {created['id']}")
        return created

    async def update_note(self, note_id: str, content: str) -> Note:
        """Replace the content of a note and bump its `updated_at`."""
        _require_id(note_id, "update")
        content = _require_content(content, "update")
        async with self._writing():
            current = await self.list_notes()
            idx = _find_index(current, note_id)
            if idx == -1:
                raise NoteNotFoundError(f"update failed: no note with id '{note_id}'")
            updated = normalize_note({**current[idx], "content": content, "updated_at": self._now()})
            merged = list(current)
            merged[idx] = updated
            await self._save(merged)
        logger.debug(f"Updated note {note_id}")
        return updated

    async def set_note_done(self, note_id: str, done: bool) -> Note:
        """Set the completion flag of a note and bump its `updated_at`."""
        _require_id(note_id, "set done")
        if not isinstance(done, bool):
            raise InputValidationError("set done failed: done must be a boolean")
        async with self._writing():
            current = await self.list_notes()
            idx = _find_index(current, note_id)
            if idx == -1:
                raise NoteNotFoundError(f"set done failed: no note with id '{note_id}'")
            updated = normalize_note({**current[idx], "done": done, "updated_at": self._now()})
            merged = list(current)
            merged[idx] = updated
            await self._save(merged)
        logger.debug(f"Marked note {note_id} done={done}")
        return updated

    async def delete_note(self, note_id: str) -> bool:
        """
        Remove a note. Returns False without writing when no note matched.

        Deleting the last note removes the storage key instead of writing an empty list.
        """
        _require_id(note_id, "delete")
        async with self._writing():
            current = await self.list_notes()
            remaining = [n for n in current if n["id"] != note_id]
            if len(remaining) == len(current):
                return False
            if not remaining:
                await self.backend.remove(self._key)
            else:
                await self._save(remaining)
        logger.debug(f"Deleted note {note_id}")
        return True
