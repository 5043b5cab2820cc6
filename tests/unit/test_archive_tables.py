"""
Unit tests for the archive table catalog and schema operations.
"""

import shutil
import sqlite3
import tempfile
import unittest
from pathlib import Path

from reportpurge.storage.archive_tables import ArchiveTableCatalog, ArchiveSchema
from reportpurge.storage.database import ArchiveDatabase
from reportpurge.storage.purge_errors import InvalidTableNameError
from reportpurge.storage.purge_models import ArchiveTableRef, TableKind


class TestTableNameParsing(unittest.TestCase):
    """Test archive table name classification."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db = ArchiveDatabase(str(Path(self.temp_dir) / "archive.db"))
        self.catalog = ArchiveTableCatalog(self.db)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_numeric_and_blob_tables(self):
        self.assertEqual(
            self.catalog.classify_table('archive_numeric_2013_01'),
            ArchiveTableRef('archive_numeric_2013_01', TableKind.NUMERIC, 2013, 1)
        )
        ref = self.catalog.classify_table('archive_blob_2012_12')
        self.assertEqual(ref.kind, TableKind.BLOB)
        self.assertEqual((ref.year, ref.month), (2012, 12))
        self.assertEqual(ref.year_month, '2012_12')

    def test_unrecognised_names(self):
        for name in ['option', 'archive_numeric', 'archive_numeric_2013_13',
                     'archive_text_2013_01', 'archive_blob_2013_1', 'xarchive_blob_2013_01']:
            self.assertIsNone(self.catalog.classify_table(name), name)

    def test_table_prefix(self):
        catalog = ArchiveTableCatalog(self.db, table_prefix='piwik_')
        self.assertIsNotNone(catalog.classify_table('piwik_archive_blob_2013_01'))
        self.assertIsNone(catalog.classify_table('archive_blob_2013_01'))
        self.assertEqual(catalog.table_name(TableKind.NUMERIC, 2013, 2), 'piwik_archive_numeric_2013_02')

    def test_table_name_rejects_invalid_month(self):
        with self.assertRaises(InvalidTableNameError):
            self.catalog.table_name(TableKind.BLOB, 2013, 0)


class TestCatalogAndSchema(unittest.TestCase):
    """Test enumeration, drop and optimize against a real database."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "archive.db"
        self.db = ArchiveDatabase(str(self.db_path))
        self.catalog = ArchiveTableCatalog(self.db)
        self.schema = ArchiveSchema(self.db, self.catalog, vacuum_after_optimize=True)

        self.catalog.create_archive_table(TableKind.NUMERIC, 2013, 2)
        self.catalog.create_archive_table(TableKind.BLOB, 2013, 1)
        self.catalog.create_archive_table(TableKind.NUMERIC, 2013, 1)
        self.db.execute("CREATE TABLE site (idsite INTEGER PRIMARY KEY)")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_list_archive_tables_skips_other_tables(self):
        names = [t.table_name for t in self.catalog.list_archive_tables()]
        self.assertEqual(names, ['archive_blob_2013_01', 'archive_numeric_2013_01', 'archive_numeric_2013_02'])
        self.assertIn('site', self.catalog.list_installed_tables())

    def test_create_archive_table_is_idempotent(self):
        self.catalog.create_archive_table(TableKind.NUMERIC, 2013, 1)
        with sqlite3.connect(self.db_path) as conn:
            columns = [row[1] for row in conn.execute("PRAGMA table_info(archive_numeric_2013_01)")]
        self.assertEqual(columns, ['idarchive', 'name', 'idsite', 'date1', 'date2',
                                   'period', 'ts_archived', 'value'])

    def test_drop_tables(self):
        dropped = self.schema.drop_tables(['archive_blob_2013_01'])
        self.assertEqual(dropped, ['archive_blob_2013_01'])
        self.assertNotIn('archive_blob_2013_01', self.catalog.list_installed_tables())

    def test_drop_refuses_non_archive_tables(self):
        with self.assertRaises(InvalidTableNameError):
            self.schema.drop_tables(['site'])
        self.assertIn('site', self.catalog.list_installed_tables())

    def test_optimize_tables(self):
        optimized = self.schema.optimize_tables(['archive_numeric_2013_01', 'archive_blob_2013_01'])
        self.assertEqual(len(optimized), 2)


if __name__ == '__main__':
    unittest.main()
