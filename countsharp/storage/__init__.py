"""
Session persistence for the countsharp engine.
"""

from countsharp.storage.store import KeyValueStore, MemoryStore, SQLiteStore
from countsharp.storage.session import SessionRecorder, SessionRepository

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SQLiteStore",
    "SessionRepository",
    "SessionRecorder",
]
