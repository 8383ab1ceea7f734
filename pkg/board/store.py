"""
Board storage backend (SQLite).

The whole board is one JSON blob in a single-row table. The store is
opaque about the blob's shape; readers run it through normalize().
"""
import sqlite3
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any

from .schema import BoardState

logger = logging.getLogger(__name__)


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class BoardStore:
    """SQLite-backed single-row store for the board blob."""

    def __init__(self, db_path: str):
        """Initialize store and create the table if needed."""
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS board_state (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    # ── raw blob access (raises sqlite3.Error / ValueError) ──────────────────

    def get(self) -> Optional[Dict[str, Any]]:
        """Return the stored blob, or None if nothing is stored."""
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT data FROM board_state WHERE id = 1").fetchone()
        if not row:
            return None
        return json.loads(row["data"])

    def put(self, data: Dict[str, Any]) -> None:
        """Insert or replace the blob."""
        payload = json.dumps(data)
        with _connect(self.db_path) as conn:
            conn.execute("""
                INSERT INTO board_state (id, data, updated_at)
                VALUES (1, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = CURRENT_TIMESTAMP
            """, (payload,))
            conn.commit()

    def delete(self) -> None:
        with _connect(self.db_path) as conn:
            conn.execute("DELETE FROM board_state WHERE id = 1")
            conn.commit()

    def updated_at(self) -> Optional[str]:
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT updated_at FROM board_state WHERE id = 1").fetchone()
        return row["updated_at"] if row else None

    # ── storage interface used by BoardFacade (never raises) ─────────────────

    def load(self) -> Optional[Dict[str, Any]]:
        try:
            return self.get()
        except (sqlite3.Error, ValueError) as e:
            logger.error(f"Failed to load board state from {self.db_path}: {e}")
            return None

    def save(self, state: BoardState) -> None:
        try:
            self.put(state.to_dict())
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Failed to save board state to {self.db_path}: {e}")

    def clear(self) -> None:
        try:
            self.delete()
        except sqlite3.Error as e:
            logger.error(f"Failed to clear board state in {self.db_path}: {e}")

    def has_saved_state(self) -> bool:
        return self.load() is not None
