"""
Snapshot persistence layer using SQLite KVStore.

Stores one MemorySnapshot per user as JSON in the ``snapshots`` table.
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from dialog_memory.persist.sqlite_store import KVStore
from .schemas import MemorySnapshot


logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Persistent storage for per-user memory snapshots.

    ``load`` never raises: a missing or unreadable snapshot comes back empty.
    ``save`` is best-effort: write failures are logged, not raised.
    """

    def __init__(self, db_path: Optional[Path] = None, kv: Optional[KVStore] = None):
        """
        Initialize snapshot store.

        Args:
            db_path: Path to SQLite database (default: data/memory/memory.db)
            kv: Existing KVStore to share (takes precedence over db_path)
        """
        if kv is None:
            if db_path is None:
                db_path = Path("data/memory/memory.db")
            kv = KVStore(Path(db_path))

        self.kv = kv

    def load(self, user_id: str) -> MemorySnapshot:
        """
        Load the snapshot for a user.

        Args:
            user_id: User identifier

        Returns:
            Stored snapshot, or an empty one if none exists or it can't be read
        """
        try:
            value = self.kv.get("snapshots", user_id)
        except sqlite3.Error as e:
            logger.error("Failed to read memory for user %s: %s", user_id, e)
            return MemorySnapshot.empty()

        if value is None:
            return MemorySnapshot.empty()

        try:
            data = json.loads(value)
            return MemorySnapshot.from_storage_dict(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.error("Failed to load memory for user %s: %s", user_id, e)
            return MemorySnapshot.empty()

    def save(self, user_id: str, snapshot: MemorySnapshot) -> bool:
        """
        Persist the snapshot for a user.

        Args:
            user_id: User identifier
            snapshot: Snapshot to store

        Returns:
            True if written, False if the write failed (already logged)
        """
        try:
            value = json.dumps(snapshot.to_storage_dict(), ensure_ascii=False).encode("utf-8")
            self.kv.set("snapshots", user_id, value)
            return True
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error("Failed to save memory for user %s: %s", user_id, e)
            return False

    def delete(self, user_id: str) -> bool:
        """
        Delete a user's snapshot.

        Returns:
            True if deleted, False if not found
        """
        return self.kv.delete("snapshots", user_id)

    def list_users(self) -> List[str]:
        """List users with a stored snapshot."""
        return self.kv.keys("snapshots")

    def close(self) -> None:
        self.kv.close()
