"""SQLite-backed persistence.

Keeps the three records in a single ``records`` table using stdlib sqlite3.
Values are stored as JSON text in a TEXT column; a NUMERIC-affinity column
would turn ``"3"`` back into the integer 3.
Each write runs in autocommit mode, so a write is durable once ``write``
returns.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from flowbuilder.observability.logging import get_logger

log = get_logger(__name__)

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS records (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
"""


class SqlitePersistence:
    """Key/value record store in a SQLite database file."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        """Open or create the database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
        """
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        # The ordered writer may call in from its worker thread; the lock
        # keeps access to the shared connection one call at a time.
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            self._db_path,
            isolation_level=None,
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        if self._db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript(_SCHEMA)

    def read(self, key: str) -> Any:
        with self._lock:
            row = self._conn.execute("SELECT value FROM records WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    def write(self, key: str, value: Any) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO records (key, value, updated_at) "
                "VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%f','now'))",
                (key, json.dumps(value)),
            )
        log.debug("record_written", backend="sqlite", key=key)

    def keys(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute("SELECT key FROM records ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
