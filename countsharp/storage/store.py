"""
Key-value stores for session persistence.

The engine only needs get/set/delete of string values under string keys.
`MemoryStore` keeps them in a dictionary; `SQLiteStore` keeps them in a
single-table SQLite database so a session survives restarts.
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from countsharp.errors import PersistenceError


class KeyValueStore(ABC):
    """Interface for the external key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Return the value stored under ``key``, or None when absent.

        Raises:
            PersistenceError: If the store cannot be read
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key``, replacing any previous value.

        Raises:
            PersistenceError: If the store cannot be written
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; removing a missing key is not an error."""

    def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """In-process store, mostly for tests and throwaway sessions."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteStore(KeyValueStore):
    """
    Store values in SQLite.

    This class keeps one connection open for the lifetime of the store.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize the SQLite store.

        Args:
            db_path: Optional path to the database file. If None, an in-memory
                     database is used.
        """
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(
                db_path if db_path else ":memory:", check_same_thread=False
            )
            self.conn.executescript(SCHEMA_SQL)
            self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open session store {db_path}: {e}") from e

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise PersistenceError("Session store is closed")
        return self.conn

    def get(self, key: str) -> Optional[str]:
        try:
            with self._lock:
                row = self._connection().execute(
                    "SELECT value FROM kv WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot read {key}: {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self._connection().execute(
                    """
                    INSERT INTO kv (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, value),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot write {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self._lock:
                self._connection().execute("DELETE FROM kv WHERE key = ?", (key,))
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot delete {key}: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
