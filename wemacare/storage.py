"""
Storage Module
==============
Persistent client-side state for WemaCARE.

Each store (auth, healthcare, language) keeps its whole state as one JSON
document under a fixed name in a small SQLite key/value table, and writes
the full document back after every mutating action.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

# Database file location
DB_PATH = Path(__file__).parent.parent / "wemacare_state.db"


class KeyValueStorage:
    """JSON key/value storage backed by SQLite.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        """Initialize the storage.

        Args:
            db_path: Optional custom database path. Defaults to
                ``WEMACARE_DB_PATH`` or ``wemacare_state.db`` in the project root.
        """
        env_path = os.getenv("WEMACARE_DB_PATH", "")
        self.db_path = Path(db_path or env_path or DB_PATH)
        self._create_table()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _create_table(self) -> None:
        try:
            conn = self._get_connection()
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.commit()
            conn.close()
            logger.info("Key/value table ready at %s.", self.db_path)
        except Exception as exc:
            logger.error("Failed to create key/value table: %s", exc)

    def get_item(self, key: str) -> Optional[Any]:
        """Return the decoded value stored under ``key``, or None."""
        try:
            conn = self._get_connection()
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            conn.close()
        except Exception as exc:
            logger.error("Failed to read '%s': %s", key, exc)
            return None

        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as exc:
            logger.error("Corrupt value stored under '%s': %s", key, exc)
            return None

    def set_item(self, key: str, value: Any) -> bool:
        """Store a JSON-serialisable value under ``key``.

        Returns:
            True if the value was written.
        """
        try:
            payload = json.dumps(value, ensure_ascii=False)
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, payload),
            )
            conn.commit()
            conn.close()
            return True
        except Exception as exc:
            logger.error("Failed to write '%s': %s", key, exc)
            return False

    def remove_item(self, key: str) -> bool:
        try:
            conn = self._get_connection()
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
            conn.close()
            return True
        except Exception as exc:
            logger.error("Failed to remove '%s': %s", key, exc)
            return False

    def clear(self) -> int:
        """Delete every stored key. Returns the number of rows removed."""
        try:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM kv_store")
            conn.commit()
            count = cursor.rowcount
            conn.close()
            logger.info("Cleared %d stored keys.", count)
            return count
        except Exception as exc:
            logger.error("Failed to clear key/value storage: %s", exc)
            return 0


class PersistedStore:
    """Base class for a named slice of persisted state.

    Subclasses set ``name`` and provide ``initial_state``. Saved state is
    merged over the initial state on construction.
    """

    name: str = ""

    def __init__(self, storage: Optional[KeyValueStorage] = None) -> None:
        self.storage = storage or KeyValueStorage()
        self.state: dict = self.initial_state()
        saved = self.storage.get_item(self.name)
        if isinstance(saved, dict):
            self.state.update(saved)
            logger.info("Restored '%s' from storage.", self.name)

    def initial_state(self) -> dict:
        return {}

    def _set(self, **changes: Any) -> None:
        self.state.update(changes)
        self._persist()

    def _persist(self) -> None:
        self.storage.set_item(self.name, self.state)

    def reset(self) -> None:
        """Return to the initial state and drop the persisted copy."""
        self.state = self.initial_state()
        self.storage.remove_item(self.name)
