from __future__ import annotations

import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Dict, Generator, Optional

from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class KeyValueStorage(ABC):
    """
    Durable string slots addressed by key.

    Each write replaces the whole value of a slot; there are no partial writes.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the slot is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Replace the value of a slot."""


class InMemoryStorage(KeyValueStorage):
    """
    Process-local storage suitable for testing and default runtime.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._lock = RLock()
        self._slots: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._slots.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._slots[key] = value


@dataclass(frozen=True)
class _Cols:
    table: str = "kv_slots"
    key: str = "key"
    value: str = "value"


_COLS = _Cols()


class SQLiteStorage(KeyValueStorage):
    """
    Key-value slots kept in a single SQLite table, one row per key.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
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
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.key} TEXT PRIMARY KEY,
                    {_COLS.value} TEXT NOT NULL
                )
                """
            )

    def get_item(self, key: str) -> Optional[str]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {_COLS.value} FROM {_COLS.table} WHERE {_COLS.key} = ?", (key,)
            ).fetchone()
            return None if row is None else str(row[_COLS.value])

    def set_item(self, key: str, value: str) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.key}, {_COLS.value}) VALUES (?, ?)
                ON CONFLICT({_COLS.key}) DO UPDATE SET {_COLS.value} = excluded.{_COLS.value}
                """,
                (key, value),
            )


# PUBLIC_INTERFACE
def get_storage(settings: Optional[Settings] = None) -> KeyValueStorage:
    """
    Factory to return the configured storage based on settings.
    - memory: InMemoryStorage
    - sqlite: SQLiteStorage at settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.storage_backend == "sqlite":
        logger.info("Using sqlite storage path=%s", settings.sqlite_db_path)
        return SQLiteStorage(settings.sqlite_db_path)
    return InMemoryStorage()
