"""
SQLite access for the archive store.

Every call to ``connection()`` is one unit of work: the transaction is
committed when the block exits cleanly, rolled back on error, and the
connection is closed either way.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence, Any

logger = logging.getLogger(__name__)


class ArchiveDatabase:
    """Thin wrapper around a SQLite database file."""

    def __init__(self, db_path: str, timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.timeout = timeout

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one statement in its own transaction and return its rowcount."""
        with self.connection() as conn:
            cursor = conn.execute(sql, tuple(params))
            return cursor.rowcount

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Any]:
        """Return the first column of the first row, or None."""
        with self.connection() as conn:
            row = conn.execute(sql, tuple(params)).fetchone()
        return row[0] if row is not None else None

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list:
        """Return every row as a ``sqlite3.Row``."""
        with self.connection() as conn:
            conn.row_factory = sqlite3.Row
            return conn.execute(sql, tuple(params)).fetchall()

    def vacuum(self):
        # VACUUM cannot run inside a transaction
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout, isolation_level=None)
        try:
            conn.execute("VACUUM")
        finally:
            conn.close()
        logger.debug(f"Vacuumed {self.db_path}")


def quote_identifier(name: str) -> str:
    """Quote a table or column name for interpolation into SQL."""
    return '"' + name.replace('"', '""') + '"'
