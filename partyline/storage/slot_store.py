"""
SQLite slot storage for the serialized chat history.
One table of string-keyed slots, one blob per key. No business logic:
callers hand in a string and get the same string back.
"""

import sqlite3
import logging
from datetime import datetime, timezone
from pathlib import Path
from contextlib import contextmanager

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS slots (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class SlotStore:
    """String-keyed blob store backed by a single SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("Slot store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        """Return the stored blob for key, or None if the slot is empty."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM slots WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str):
        """Overwrite the slot for key."""
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO slots (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
        logger.debug("Wrote slot %s (%d chars)", key, len(value))

    def get_stats(self) -> dict:
        """Slot count, total stored size and last write time."""
        with self._connect() as conn:
            row = conn.execute(
                """SELECT COUNT(*) AS slots,
                          COALESCE(SUM(LENGTH(value)), 0) AS chars,
                          MAX(updated_at) AS last_write
                   FROM slots"""
            ).fetchone()
        return {
            "slots": row["slots"],
            "chars": row["chars"],
            "last_write": row["last_write"],
        }
