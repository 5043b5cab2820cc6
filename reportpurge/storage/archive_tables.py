"""
Archive table catalog and schema operations.

Archives are partitioned by month into ``archive_numeric_YYYY_MM`` and
``archive_blob_YYYY_MM`` tables, optionally behind a common prefix. The
catalog enumerates and parses those names; the schema helper drops and
optimizes them.
"""

import logging
import re
from typing import List, Optional, Iterable

from .database import ArchiveDatabase, quote_identifier
from .purge_errors import InvalidTableNameError
from .purge_models import ArchiveTableRef, TableKind

logger = logging.getLogger(__name__)


class ArchiveTableCatalog:
    """Finds and names the archive tables installed in the database."""

    def __init__(self, db: ArchiveDatabase, table_prefix: str = ""):
        self.db = db
        self.table_prefix = table_prefix
        self._pattern = re.compile(
            r'^' + re.escape(table_prefix) + r'archive_(numeric|blob)_(\d{4})_(\d{2})$'
        )

    def list_installed_tables(self) -> List[str]:
        """Return every table in the database, ordered by name."""
        rows = self.db.fetch_all(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        )
        return [row['name'] for row in rows]

    def classify_table(self, table_name: str) -> Optional[ArchiveTableRef]:
        """Parse kind, year and month from a table name; None if not an archive table."""
        match = self._pattern.match(table_name)
        if not match:
            return None

        kind, year, month = match.groups()
        month = int(month)
        if not 1 <= month <= 12:
            return None

        return ArchiveTableRef(
            table_name=table_name,
            kind=TableKind(kind),
            year=int(year),
            month=month
        )

    def list_archive_tables(self) -> List[ArchiveTableRef]:
        refs = []
        for table_name in self.list_installed_tables():
            ref = self.classify_table(table_name)
            if ref is None:
                logger.debug(f"Skipping non-archive table {table_name}")
                continue
            refs.append(ref)
        return refs

    def table_name(self, kind: TableKind, year: int, month: int) -> str:
        if not 1 <= month <= 12:
            raise InvalidTableNameError(f"Invalid archive month: {month}")
        return f"{self.table_prefix}archive_{kind.value}_{year:04d}_{month:02d}"

    def create_archive_table(self, kind: TableKind, year: int, month: int) -> str:
        """Create the archive table for a month if it does not exist yet."""
        table_name = self.table_name(kind, year, month)
        value_type = "REAL" if kind == TableKind.NUMERIC else "BLOB"

        self.db.execute(f"""
            CREATE TABLE IF NOT EXISTS {quote_identifier(table_name)} (
                idarchive INTEGER NOT NULL,
                name TEXT NOT NULL,
                idsite INTEGER,
                date1 TEXT,
                date2 TEXT,
                period INTEGER,
                ts_archived TEXT,
                value {value_type},
                PRIMARY KEY (idarchive, name)
            )
        """)
        self.db.execute(
            f"CREATE INDEX IF NOT EXISTS {quote_identifier('index_period_' + table_name)} "
            f"ON {quote_identifier(table_name)} (period)"
        )
        return table_name

    def require_archive_table(self, table_name: str) -> ArchiveTableRef:
        ref = self.classify_table(table_name)
        if ref is None:
            raise InvalidTableNameError(f"Not an archive table: {table_name}")
        return ref


class ArchiveSchema:
    """Drops and optimizes archive tables."""

    def __init__(self, db: ArchiveDatabase, catalog: ArchiveTableCatalog, vacuum_after_optimize: bool = False):
        self.db = db
        self.catalog = catalog
        self.vacuum_after_optimize = vacuum_after_optimize

    def drop_tables(self, table_names: Iterable[str]) -> List[str]:
        dropped = []
        for table_name in table_names:
            self.catalog.require_archive_table(table_name)
            self.db.execute(f"DROP TABLE IF EXISTS {quote_identifier(table_name)}")
            dropped.append(table_name)
            logger.info(f"Dropped archive table {table_name}")
        return dropped

    def optimize_tables(self, table_names: Iterable[str]) -> List[str]:
        optimized = []
        for table_name in table_names:
            self.catalog.require_archive_table(table_name)
            self.db.execute(f"ANALYZE {quote_identifier(table_name)}")
            optimized.append(table_name)

        if optimized and self.vacuum_after_optimize:
            self.db.vacuum()

        logger.info(f"Optimized {len(optimized)} archive tables")
        return optimized
