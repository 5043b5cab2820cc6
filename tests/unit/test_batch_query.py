"""
Unit tests for the batched query primitives.
"""

import shutil
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import Mock

from reportpurge.storage.archive_tables import ArchiveTableCatalog
from reportpurge.storage.batch_query import BatchQueryRunner
from reportpurge.storage.database import ArchiveDatabase
from reportpurge.storage.purge_errors import PurgeCancelledError
from reportpurge.storage.purge_models import TableKind
from reportpurge.storage.sql_fragments import not_in


class TestSegmentedFetch(unittest.TestCase):
    """Test sub-range iteration without a database."""

    def test_three_scans_for_250000_ids(self):
        db = Mock()
        db.fetch_one.side_effect = [10, 20, 5]
        runner = BatchQueryRunner(db)

        counts = list(runner.segmented_fetch_one("SELECT COUNT(*) FROM t WHERE id >= ? AND id < ?",
                                                 (), 0, 250000, 100000))

        self.assertEqual(counts, [10, 20, 5])
        ranges = [call.args[1] for call in db.fetch_one.call_args_list]
        self.assertEqual(ranges, [(0, 100000), (100000, 200000), (200000, 300000)])

    def test_leading_params_come_before_range(self):
        db = Mock()
        db.fetch_one.return_value = 0
        runner = BatchQueryRunner(db)

        list(runner.segmented_fetch_one("SQL", ('a', 'b'), 0, 0, 10))

        db.fetch_one.assert_called_once_with("SQL", ('a', 'b', 0, 10))

    def test_generator_is_lazy(self):
        db = Mock()
        db.fetch_all.return_value = [{'idarchive': 1}]
        runner = BatchQueryRunner(db)

        rows = runner.segmented_fetch_all("SQL", (), 0, 1000, 10)
        self.assertEqual(db.fetch_all.call_count, 0)
        next(rows)
        self.assertEqual(db.fetch_all.call_count, 1)

    def test_rejects_non_positive_step(self):
        runner = BatchQueryRunner(Mock())
        with self.assertRaises(ValueError):
            list(runner.segmented_fetch_one("SQL", (), 0, 10, 0))

    def test_cancellation_between_batches(self):
        db = Mock()
        cancel = threading.Event()

        def fetch(sql, params):
            cancel.set()
            return 1

        db.fetch_one.side_effect = fetch
        runner = BatchQueryRunner(db, cancel)

        with self.assertRaises(PurgeCancelledError) as ctx:
            list(runner.segmented_fetch_one("SQL", (), 0, 300, 100, table='archive_blob_2013_01'))

        self.assertEqual(db.fetch_one.call_count, 1)
        self.assertEqual(ctx.exception.completed_batches, 1)


class TestBatchedQueriesOnSqlite(unittest.TestCase):
    """Test counts and deletes against a real archive table."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db = ArchiveDatabase(str(Path(self.temp_dir) / "archive.db"))
        self.catalog = ArchiveTableCatalog(self.db)
        self.table = self.catalog.create_archive_table(TableKind.NUMERIC, 2013, 1)
        self.runner = BatchQueryRunner(self.db)

        with self.db.connection() as conn:
            rows = []
            for idarchive in [1, 2, 99999, 100000, 150000, 199999, 250000]:
                rows.append((idarchive, 'nb_visits', 1))
                rows.append((idarchive, 'nb_actions', 1))
            conn.executemany(
                f"INSERT INTO {self.table} (idarchive, name, period) VALUES (?, ?, ?)", rows
            )

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_max_id(self):
        self.assertEqual(self.runner.max_id(self.table), 250000)

    def test_max_id_of_empty_table_is_zero(self):
        empty = self.catalog.create_archive_table(TableKind.BLOB, 2013, 1)
        self.assertEqual(self.runner.max_id(empty), 0)

    def test_batched_count_matches_unbatched_count(self):
        where = not_in('name', ['nb_visits'])
        batches = self.runner.batched_count(self.table, where, 100000)

        self.assertEqual(len(batches), 3)
        self.assertEqual(batches, [3, 3, 1])
        unbatched = self.db.fetch_one(f"SELECT COUNT(*) FROM {self.table} WHERE name NOT IN ('nb_visits')")
        self.assertEqual(sum(batches), unbatched)

    def test_batched_count_without_restriction(self):
        self.assertEqual(sum(self.runner.batched_count(self.table, None, 100000)), 14)

    def test_delete_all_caps_rows_per_statement(self):
        deleted = self.runner.delete_all(self.table, not_in('name', ['nb_visits']), 'idarchive', 3)

        self.assertEqual(deleted, 7)
        # 3 + 3 + 1 rows
        self.assertEqual(self.runner.statements_executed, 3)
        remaining = self.db.fetch_one(f"SELECT COUNT(*) FROM {self.table}")
        self.assertEqual(remaining, 7)

    def test_delete_all_exact_multiple_needs_final_empty_statement(self):
        deleted = self.runner.delete_all(self.table, None, 'idarchive', 7)
        self.assertEqual(deleted, 14)
        self.assertEqual(self.runner.statements_executed, 3)

    def test_delete_all_is_idempotent(self):
        where = not_in('name', ['nb_visits'])
        self.runner.delete_all(self.table, where, 'idarchive', 100)
        self.assertEqual(self.runner.delete_all(self.table, where, 'idarchive', 100), 0)

    def test_cancelled_delete_keeps_completed_batches(self):
        cancel = threading.Event()
        runner = BatchQueryRunner(self.db, cancel)
        original_execute = self.db.execute

        def execute_then_cancel(sql, params=()):
            result = original_execute(sql, params)
            cancel.set()
            return result

        self.db.execute = execute_then_cancel
        with self.assertRaises(PurgeCancelledError):
            runner.delete_all(self.table, None, 'idarchive', 4)

        self.assertEqual(self.db.fetch_one(f"SELECT COUNT(*) FROM {self.table}"), 10)


if __name__ == '__main__':
    unittest.main()
