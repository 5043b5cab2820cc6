"""
Purges archived reports and metrics that are considered old.

Archive tables older than the retention window are either dropped outright
or have their purgeable rows deleted in batches, depending on which reports
and metrics the policy keeps. ``estimate()`` walks the same decisions
without touching any data.
"""

import logging
from datetime import date
from typing import Dict, List, Mapping, Iterable, Optional, Tuple

from .archive_tables import ArchiveTableCatalog, ArchiveSchema
from .batch_query import BatchQueryRunner
from .database import quote_identifier
from .purge_config import policy_from_settings
from .purge_models import (
    DROP_TABLE, DEFAULT_SELECT_BATCH_SIZE, ArchiveTableRef, PurgeAction, PurgeClassification,
    RetentionPolicy, TableKind
)
from .sql_fragments import SqlFragment, and_, in_, like, not_equal, not_in, not_like, or_

logger = logging.getLogger(__name__)

ARCHIVE_DONE_FLAG = 'done'


def removal_cutoff(today: date, older_than_months: int) -> date:
    """
    Return the newest month whose archives may be purged.

    The current month and the ``older_than_months`` months before it are
    always kept, however far into the current month ``today`` is.
    """
    months = today.year * 12 + (today.month - 1) - (1 + older_than_months)
    year, month_index = divmod(months, 12)
    return date(year, month_index + 1, 1)


class ReportsPurger:
    """Decides which archive tables to drop or trim and carries it out."""

    def __init__(self, policy: RetentionPolicy, catalog: ArchiveTableCatalog,
                 runner: BatchQueryRunner, schema: ArchiveSchema, today: Optional[date] = None):
        self.policy = policy
        self.catalog = catalog
        self.runner = runner
        self.schema = schema
        self.today = today

        # year_month -> archive ids of segment archives, built once per run
        self._segment_archive_ids: Optional[Dict[str, List[int]]] = None

    @classmethod
    def make(cls, settings: Mapping, metrics_to_keep: Iterable[str], catalog: ArchiveTableCatalog,
             runner: BatchQueryRunner, schema: ArchiveSchema,
             select_batch_size: int = DEFAULT_SELECT_BATCH_SIZE,
             today: Optional[date] = None) -> 'ReportsPurger':
        """Create a purger from a flat settings map (see ``policy_from_settings``)."""
        policy = policy_from_settings(settings, metrics_to_keep, select_batch_size)
        return cls(policy, catalog, runner, schema, today=today)

    @staticmethod
    def should_period_be_purged(year: int, month: int, cutoff: date) -> bool:
        """True if an archive for ``year``/``month`` is at or before the cutoff month."""
        return year < cutoff.year or (year == cutoff.year and month <= cutoff.month)

    def get_removal_cutoff(self) -> date:
        return removal_cutoff(self.today or date.today(), self.policy.older_than_months)

    def get_archive_tables_to_purge(self) -> Tuple[List[ArchiveTableRef], List[ArchiveTableRef]]:
        """Return the old numeric tables and the old blob tables, in catalog order."""
        cutoff = self.get_removal_cutoff()

        old_numeric_tables = []
        old_blob_tables = []
        for table in self.catalog.list_archive_tables():
            if not self.should_period_be_purged(table.year, table.month, cutoff):
                continue
            if table.kind == TableKind.NUMERIC:
                old_numeric_tables.append(table)
            else:
                old_blob_tables.append(table)

        logger.debug(
            f"Cutoff {cutoff:%Y-%m}: {len(old_numeric_tables)} numeric and "
            f"{len(old_blob_tables)} blob tables are old"
        )
        return old_numeric_tables, old_blob_tables

    def classify_tables(self) -> List[PurgeClassification]:
        """
        Decide what happens to every old archive table.

        Blob tables come first. Every where-expression, and so the segment
        archive lookup that reads the numeric tables, is built here, before
        any numeric table can be dropped.
        """
        old_numeric_tables, old_blob_tables = self.get_archive_tables_to_purge()
        policy = self.policy
        decisions = []

        if not policy.periods_to_keep and not policy.keep_segment_reports:
            for table in old_blob_tables:
                decisions.append(PurgeClassification(table, PurgeAction.DROP_TABLE))
        else:
            for table in old_blob_tables:
                where = self._get_blob_table_where_expr(old_numeric_tables, table)
                decisions.append(PurgeClassification(table, PurgeAction.DELETE_ROWS, where))

        if policy.keep_basic_metrics and policy.metrics_to_keep:
            where = self._get_numeric_table_where_expr()
            for table in old_numeric_tables:
                decisions.append(PurgeClassification(table, PurgeAction.DELETE_ROWS, where))
        else:
            for table in old_numeric_tables:
                decisions.append(PurgeClassification(table, PurgeAction.DROP_TABLE))

        return decisions

    def purge(self, optimize: bool = False) -> Dict[str, int]:
        """
        Purge old report and metric data.

        Returns a map of table name to rows deleted, or ``DROP_TABLE`` for
        tables that were dropped. Storage errors propagate and abort the
        run; batches already finished stay committed.
        """
        self._segment_archive_ids = None
        decisions = self.classify_tables()
        result: Dict[str, int] = {}

        for kind in (TableKind.BLOB, TableKind.NUMERIC):
            kind_decisions = [d for d in decisions if d.table.kind == kind]

            to_drop = [d.table.table_name for d in kind_decisions if d.action == PurgeAction.DROP_TABLE]
            if to_drop:
                self.schema.drop_tables(to_drop)
                for table_name in to_drop:
                    result[table_name] = DROP_TABLE

            trimmed = []
            for decision in kind_decisions:
                if decision.action != PurgeAction.DELETE_ROWS:
                    continue
                table_name = decision.table.table_name
                result[table_name] = self.runner.delete_all(
                    table_name, decision.where, 'idarchive', self.policy.max_rows_per_delete
                )
                trimmed.append(table_name)
                logger.info(f"Deleted {result[table_name]} rows from {table_name}")

            if optimize and trimmed:
                self.schema.optimize_tables(trimmed)

        return result

    def estimate(self) -> Dict[str, int]:
        """
        Return what ``purge()`` would do, without changing anything.

        Maps table names to the number of rows that would be deleted, or to
        ``DROP_TABLE`` for tables that would be dropped. Tables with nothing
        to delete are left out.
        """
        self._segment_archive_ids = None
        result: Dict[str, int] = {}

        for decision in self.classify_tables():
            table_name = decision.table.table_name
            if decision.action == PurgeAction.DROP_TABLE:
                result[table_name] = DROP_TABLE
                continue

            row_count = sum(
                self.runner.batched_count(table_name, decision.where, self.policy.select_batch_size)
            )
            if row_count > 0:
                result[table_name] = row_count

        return result

    def _get_numeric_table_where_expr(self) -> SqlFragment:
        return and_(
            not_in('name', self.policy.metrics_to_keep),
            not_like('name', ARCHIVE_DONE_FLAG + '%')
        )

    def _get_blob_table_where_expr(self, old_numeric_tables: List[ArchiveTableRef],
                                   table: ArchiveTableRef) -> Optional[SqlFragment]:
        """Return the expression matching purgeable blob rows, or None for every row."""
        if not self.policy.periods_to_keep:
            return None

        where = not_in('period', self.policy.periods_to_keep)

        # segments of kept periods still go unless segment reports are kept
        if not self.policy.keep_segment_reports:
            segment_index = self._find_segment_archives(old_numeric_tables)
            archive_ids = segment_index.get(table.year_month, [])
            if archive_ids:
                where = or_(where, in_('idarchive', archive_ids))
            else:
                logger.debug(f"No segment archives found for {table.year_month}")

        return where.grouped()

    def _find_segment_archives(self, numeric_tables: List[ArchiveTableRef]) -> Dict[str, List[int]]:
        """
        Map each numeric table's month to the ids of its segment archives.

        Segment archives are only identifiable through their completion
        flags (``done<hash>.<plugin>``), which live in the numeric tables.
        """
        if self._segment_archive_ids is not None:
            return self._segment_archive_ids

        condition = and_(
            not_equal('name', ARCHIVE_DONE_FLAG),
            like('name', ARCHIVE_DONE_FLAG + '_%.%')
        )
        index: Dict[str, List[int]] = {}
        for table in numeric_tables:
            sql = (
                f"SELECT idarchive FROM {quote_identifier(table.table_name)} "
                f"WHERE {condition.sql} AND idarchive >= ? AND idarchive < ?"
            )
            last = self.runner.max_id(table.table_name, 'idarchive')

            archive_ids = index.setdefault(table.year_month, [])
            seen = set(archive_ids)
            for row in self.runner.segmented_fetch_all(
                    sql, condition.params, 0, last, self.policy.select_batch_size, table.table_name):
                idarchive = row['idarchive']
                if idarchive not in seen:
                    seen.add(idarchive)
                    archive_ids.append(idarchive)

        self._segment_archive_ids = index
        return index
