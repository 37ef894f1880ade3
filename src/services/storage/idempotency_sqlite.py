"""
SQLite-backed idempotency store.

Keeps processed bill keys across application restarts, so re-running the
same file on another day still skips bills that were already submitted.
"""

import sqlite3
import json
from contextlib import closing
from datetime import datetime, UTC
from typing import Optional
from .idempotency_base import IdempotencyStoreBase


class SQLiteIdempotencyStore(IdempotencyStoreBase):
    def __init__(self, db_path: str = "idempotency.db"):
        """
        Initialize store with database path.

        Args:
            db_path: Path to SQLite database file (default: idempotency.db)
        """
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Create processed_keys table if it doesn't exist"""
        with closing(sqlite3.connect(self.db_path)) as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS processed_keys (
                    key TEXT PRIMARY KEY,
                    metadata TEXT NOT NULL,
                    processed_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_processed_at
                ON processed_keys(processed_at)
            """)

            conn.commit()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _to_dict(row: sqlite3.Row) -> dict:
        return {
            "key": row["key"],
            "metadata": json.loads(row["metadata"]),
            "processed_at": row["processed_at"],
        }

    def contains(self, key: str) -> bool:
        with closing(self._get_connection()) as conn:
            cursor = conn.execute("SELECT 1 FROM processed_keys WHERE key = ?", (key,))
            return cursor.fetchone() is not None

    def add(self, key: str, metadata: Optional[dict] = None) -> None:
        with closing(self._get_connection()) as conn:
            # First write wins; a replayed success keeps the original record
            conn.execute("""
                INSERT OR IGNORE INTO processed_keys (key, metadata, processed_at)
                VALUES (?, ?, ?)
            """, (key, json.dumps(metadata or {}), datetime.now(UTC).isoformat()))
            conn.commit()

    def get(self, key: str) -> Optional[dict]:
        with closing(self._get_connection()) as conn:
            row = conn.execute("""
                SELECT key, metadata, processed_at
                FROM processed_keys
                WHERE key = ?
            """, (key,)).fetchone()

        return self._to_dict(row) if row is not None else None

    def list_all(self) -> list:
        """
        List all processed keys (newest first).

        Returns:
            List of key records
        """
        with closing(self._get_connection()) as conn:
            rows = conn.execute("""
                SELECT key, metadata, processed_at
                FROM processed_keys
                ORDER BY processed_at DESC
            """).fetchall()

        return [self._to_dict(row) for row in rows]
