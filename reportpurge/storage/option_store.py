"""
Key/value option storage.

Options persist purge settings changed at runtime and the time of the last
purge run.
"""

import logging
from typing import Any, Dict, List, Optional

from .database import ArchiveDatabase, quote_identifier
from .purge_models import OptionRecord

logger = logging.getLogger(__name__)


def _is_autoload(value: Any) -> bool:
    return str(value) in ('1', 't', 'true', 'True')


class OptionStore:
    """DAO for the ``option`` table."""

    def __init__(self, db: ArchiveDatabase, table: str = 'option'):
        self.db = db
        self.table = table
        self._quoted = quote_identifier(table)

    def create_table(self):
        self.db.execute(f"""
            CREATE TABLE IF NOT EXISTS {self._quoted} (
                option_name TEXT PRIMARY KEY,
                option_value TEXT NOT NULL,
                autoload TEXT NOT NULL DEFAULT '1'
            )
        """)

    def set(self, name: str, value: Any, autoload: bool = False):
        """Insert an option or update its value if it already exists."""
        with self.db.connection() as conn:
            row = conn.execute(
                f"SELECT option_name FROM {self._quoted} WHERE option_name = ?", (name,)
            ).fetchone()

            if row:
                conn.execute(
                    f"UPDATE {self._quoted} SET option_value = ? WHERE option_name = ?",
                    (str(value), name)
                )
            else:
                conn.execute(
                    f"INSERT INTO {self._quoted} (option_name, option_value, autoload) VALUES (?, ?, ?)",
                    (name, str(value), '1' if autoload else '0')
                )

        logger.debug(f"Option {name} set")

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.db.fetch_one(
            f"SELECT option_value FROM {self._quoted} WHERE option_name = ?", (name,)
        )
        return value if value is not None else default

    def delete(self, name: str) -> bool:
        deleted = self.db.execute(f"DELETE FROM {self._quoted} WHERE option_name = ?", (name,))
        return deleted > 0

    def get_all_autoload(self) -> Dict[str, str]:
        rows = self.db.fetch_all(
            f"SELECT option_name, option_value FROM {self._quoted} WHERE autoload IN ('1', 't')"
        )
        return {row['option_name']: row['option_value'] for row in rows}

    def fetch_all(self) -> List[OptionRecord]:
        rows = self.db.fetch_all(
            f"SELECT option_name, option_value, autoload FROM {self._quoted} ORDER BY option_name"
        )
        return [
            OptionRecord(
                name=row['option_name'],
                value=row['option_value'],
                autoload=_is_autoload(row['autoload'])
            )
            for row in rows
        ]
