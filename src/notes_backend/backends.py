from __future__ import annotations

import asyncio
import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Any, Dict, Generator, Iterable, List, Optional, Union

from .errors import BackendOperationError, BackendUnavailableError
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

Keys = Union[str, Iterable[str]]


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise BackendOperationError(f"value for key '{key}' is not serializable: {e}") from e


def _key_list(keys: Keys) -> List[str]:
    if isinstance(keys, str):
        return [keys]
    return list(keys)


# PUBLIC_INTERFACE
class KeyValueBackend(ABC):
    """
    Whole-value key-value persistence contract consumed by the note store.

    There are no partial updates, transactions or queries: a value is read,
    written or removed as a unit. Every failure surfaces as BackendOperationError.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Return stored values for the keys of `defaults`, falling back to the given default per key."""

    @abstractmethod
    async def set(self, items: Dict[str, Any]) -> None:
        """Store every value of `items` under its key, replacing what was there."""

    @abstractmethod
    async def remove(self, keys: Keys) -> None:
        """Delete one key or an iterable of keys. Absent keys are ignored."""


class InMemoryBackend(KeyValueBackend):
    """
    Thread-safe in-memory backend suitable for testing and default runtime.

    Values are kept JSON-encoded so that nothing handed out can alias stored state.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[str, str] = {}

    async def get(self, defaults: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            return {
                k: json.loads(self._items[k]) if k in self._items else default
                for k, default in defaults.items()
            }

    async def set(self, items: Dict[str, Any]) -> None:
        encoded = {k: _encode(k, v) for k, v in items.items()}
        with self._lock:
            self._items.update(encoded)

    async def remove(self, keys: Keys) -> None:
        with self._lock:
            for k in _key_list(keys):
                self._items.pop(k, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._items)


@dataclass(frozen=True)
class _Cols:
    table: str = "kv"
    key: str = "key"
    value: str = "value"


_COLS = _Cols()


class SQLiteBackend(KeyValueBackend):
    """
    Lightweight SQLite backend storing JSON-encoded values in a single key/value table.

    sqlite3 is blocking, so each call runs in a worker thread.
    """

    name = "sqlite"

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._lock = RLock()
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        try:
            os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
            with self._conn() as conn:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {_COLS.table} (
                        {_COLS.key} TEXT PRIMARY KEY,
                        {_COLS.value} TEXT NOT NULL
                    )
                    """
                )
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Could not open sqlite store at {self._db_path}: {e}")
            raise BackendUnavailableError(f"sqlite store unavailable at {self._db_path}: {e}") from e

    def _get_sync(self, defaults: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(defaults)
        if not defaults:
            return result
        placeholders = ", ".join("?" for _ in defaults)
        with self._lock, self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_COLS.key}, {_COLS.value} FROM {_COLS.table} WHERE {_COLS.key} IN ({placeholders})",
                list(defaults),
            ).fetchall()
        for row in rows:
            result[row[_COLS.key]] = json.loads(row[_COLS.value])
        return result

    def _set_sync(self, items: Dict[str, Any]) -> None:
        encoded = [(k, _encode(k, v)) for k, v in items.items()]
        with self._lock, self._conn() as conn:
            conn.executemany(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.key}, {_COLS.value}) VALUES (?, ?)
                ON CONFLICT({_COLS.key}) DO UPDATE SET {_COLS.value} = excluded.{_COLS.value}
                """,
                encoded,
            )

    def _remove_sync(self, keys: Keys) -> None:
        with self._lock, self._conn() as conn:
            conn.executemany(
                f"DELETE FROM {_COLS.table} WHERE {_COLS.key} = ?",
                [(k,) for k in _key_list(keys)],
            )

    async def _run(self, op: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except (sqlite3.Error, ValueError) as e:
            logger.error(f"sqlite {op} failed on {self._db_path}: {e}")
            raise BackendOperationError(f"storage.{op} failed: {e}") from e

    async def get(self, defaults: Dict[str, Any]) -> Dict[str, Any]:
        return await self._run("get", self._get_sync, defaults)

    async def set(self, items: Dict[str, Any]) -> None:
        await self._run("set", self._set_sync, items)

    async def remove(self, keys: Keys) -> None:
        await self._run("remove", self._remove_sync, keys)


# PUBLIC_INTERFACE
def get_backend(settings: Optional[Settings] = None) -> KeyValueBackend:
    """
    Factory to return the configured backend based on settings.
    - memory: InMemoryBackend
    - sqlite: SQLiteBackend at settings.sqlite_db_path

    Unknown names raise BackendUnavailableError; there is no fallback.
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "memory":
        return InMemoryBackend()
    if settings.persistence_backend == "sqlite":
        return SQLiteBackend(settings.sqlite_db_path)
    raise BackendUnavailableError(f"unknown persistence backend '{settings.persistence_backend}'")
