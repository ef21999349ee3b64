"""
Storage - Persistent key/value store for JobPulse

This module holds the small amount of client-resident state that survives a
restart: the bearer token, the email-account cache blob and its timestamp,
the "OAuth in progress" flag, and the "last connected at" marker.

Values are strings, keyed by name, kept in a single SQLite table. Multi-key
updates run inside one transaction so a cache blob and its timestamp are
never observed half-written.
"""

import sqlite3
import threading
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from jobpulse.constants import DEFAULT_STORE_PATH

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class KeyValueStore:
    """
    SQLite-backed string store.

    Pass ``":memory:"`` as the path for a throwaway store (tests, dry runs).
    A lock serializes access so the store can be shared with the background
    account-refresh worker.
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = str(db_path) if db_path is not None else str(DEFAULT_STORE_PATH)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Create the key/value table if it does not exist."""
        with self._lock, self._conn:
            if self.db_path != IN_MEMORY:
                # WAL lets a second process read while we write
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
        logger.debug(f"Key/value store ready at {self.db_path}")

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the stored value for ``key`` or ``default``."""
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set(self, key: str, value: str):
        """Store a single value."""
        self.update({key: value})

    def delete(self, *keys: str):
        """Remove one or more keys in a single transaction."""
        self.update({key: None for key in keys})

    def update(self, items: Dict[str, Optional[str]]):
        """
        Apply several writes atomically.

        Args:
            items: Mapping of key to new value; a value of None deletes the key
        """
        now = datetime.now(timezone.utc).isoformat()
        with self._lock, self._conn:
            for key, value in items.items():
                if value is None:
                    self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                else:
                    self._conn.execute(
                        """
                        INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                        ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                       updated_at = excluded.updated_at
                        """,
                        (key, str(value), now),
                    )

    def keys(self) -> Iterable[str]:
        with self._lock:
            rows = self._conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def close(self):
        with self._lock:
            self._conn.close()
