"""
Batched query primitives.

Large archive tables are never scanned or deleted in one statement. Scans
walk ascending ``idarchive`` sub-ranges and yield one result per range;
deletes remove at most ``max_rows_per_query`` rows per statement. Each
statement runs in its own transaction, so an interrupted run keeps the
batches it already finished and can simply be started again.
"""

import logging
import threading
from typing import Any, Iterator, Optional, Sequence, List

from .database import ArchiveDatabase, quote_identifier
from .purge_errors import PurgeCancelledError
from .sql_fragments import SqlFragment, where_clause

logger = logging.getLogger(__name__)


class BatchQueryRunner:
    """Runs SQL over id ranges or row limits, one short statement at a time."""

    def __init__(self, db: ArchiveDatabase, cancel_event: Optional[threading.Event] = None):
        self.db = db
        self.cancel_event = cancel_event
        self.statements_executed = 0

    def _check_cancelled(self, table: str, completed_batches: int):
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PurgeCancelledError(table, completed_batches)

    def max_id(self, table: str, column: str = 'idarchive') -> int:
        value = self.db.fetch_one(
            f"SELECT MAX({quote_identifier(column)}) FROM {quote_identifier(table)}"
        )
        return int(value) if value is not None else 0

    def segmented_fetch_one(self, sql: str, params: Sequence[Any], first: int, last: int,
                            step: int, table: str = "") -> Iterator[Any]:
        """
        Run a scalar query once per id sub-range.

        ``sql`` must end with two ``?`` placeholders for the lower (inclusive)
        and upper (exclusive) bound. Ranges start at ``first`` and advance by
        ``step`` while the lower bound is ``<= last``.
        """
        if step <= 0:
            raise ValueError(f"Batch size must be positive, got {step}")

        completed = 0
        for low in range(first, last + 1, step):
            self._check_cancelled(table, completed)
            self.statements_executed += 1
            yield self.db.fetch_one(sql, tuple(params) + (low, low + step))
            completed += 1

    def segmented_fetch_all(self, sql: str, params: Sequence[Any], first: int, last: int,
                            step: int, table: str = "") -> Iterator[Any]:
        """Like ``segmented_fetch_one`` but yields every row of every batch."""
        if step <= 0:
            raise ValueError(f"Batch size must be positive, got {step}")

        completed = 0
        for low in range(first, last + 1, step):
            self._check_cancelled(table, completed)
            self.statements_executed += 1
            for row in self.db.fetch_all(sql, tuple(params) + (low, low + step)):
                yield row
            completed += 1

    def batched_count(self, table: str, where: Optional[SqlFragment], step: int,
                      id_column: str = 'idarchive') -> List[int]:
        """Return per-batch counts of rows matching ``where`` across the whole table."""
        condition = f"{where.sql} AND " if where is not None and where.sql else ""
        params = where.params if where is not None else ()
        column = quote_identifier(id_column)
        sql = (
            f"SELECT COUNT(*) FROM {quote_identifier(table)} "
            f"WHERE {condition}{column} >= ? AND {column} < ?"
        )
        last = self.max_id(table, id_column)
        return [int(count or 0) for count in self.segmented_fetch_one(sql, params, 0, last, step, table)]

    def delete_all(self, table: str, where: Optional[SqlFragment], order_by: str,
                   max_rows_per_query: int) -> int:
        """
        Delete every row matching ``where``, at most ``max_rows_per_query`` per statement.

        Returns the total number of rows deleted.
        """
        if max_rows_per_query <= 0:
            raise ValueError(f"max_rows_per_query must be positive, got {max_rows_per_query}")

        clause = where_clause(where)
        quoted = quote_identifier(table)
        sql = (
            f"DELETE FROM {quoted} WHERE rowid IN ("
            f"SELECT rowid FROM {quoted} {clause.sql} "
            f"ORDER BY {quote_identifier(order_by)} ASC LIMIT ?)"
        )

        total_deleted = 0
        batches = 0
        while True:
            self._check_cancelled(table, batches)
            self.statements_executed += 1
            deleted = self.db.execute(sql, clause.params + (max_rows_per_query,))
            batches += 1
            total_deleted += deleted
            if deleted < max_rows_per_query:
                break

        logger.debug(f"Deleted {total_deleted} rows from {table} in {batches} batches")
        return total_deleted
