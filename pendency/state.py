"""
Persisted client state: authenticated identity, token and per-user read
notifications.

Backed by a small SQLite key-value table; values are JSON text. Absent or
corrupt entries read back as the caller's default.
"""

import json
import logging
import sqlite3
from typing import Any, Iterable, List, Optional

logger = logging.getLogger(__name__)

AUTH_USER_KEY = "auth_user"
AUTH_TOKEN_KEY = "auth_token"
READ_NOTIFICATIONS_PREFIX = "read_notifications_"


class StateStore:
    """SQLite-backed key-value store."""

    def __init__(self, db_path: str = "pendency_state.db"):
        self.db_path = db_path
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _ensure_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get_raw(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT value FROM kv_state WHERE key = ?", (key,)
            ).fetchone()
        finally:
            conn.close()
        return row[0] if row else None

    def set_raw(self, key: str, value: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO kv_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def get_json(self, key: str, default: Any = None) -> Any:
        """Read a JSON value; absent or undecodable entries give the default."""
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding corrupt state entry {key!r}")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_raw(key, json.dumps(value))


def read_state_key(username: str) -> str:
    return f"{READ_NOTIFICATIONS_PREFIX}{username}"


class ReadStateStore:
    """Acknowledged notification ids for one user."""

    def __init__(self, store: StateStore, username: str):
        self.store = store
        self.username = username
        self.key = read_state_key(username)

    def load(self) -> List[str]:
        value = self.store.get_json(self.key, [])
        if not isinstance(value, list):
            logger.warning(f"Read-state for {self.username!r} is not a list, resetting")
            return []
        return [str(item) for item in value]

    def save(self, ids: Iterable[str]) -> None:
        self.store.set_json(self.key, list(ids))
