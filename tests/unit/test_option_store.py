"""
Unit tests for the option store.
"""

import shutil
import tempfile
import unittest
from pathlib import Path

from reportpurge.storage.database import ArchiveDatabase
from reportpurge.storage.option_store import OptionStore
from reportpurge.storage.purge_models import OptionRecord


class TestOptionStore(unittest.TestCase):
    """Test option persistence."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db = ArchiveDatabase(str(Path(self.temp_dir) / "archive.db"))
        self.store = OptionStore(self.db)
        self.store.create_table()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_set_inserts_then_updates(self):
        self.store.set('delete_reports_older_than', 6, autoload=True)
        self.store.set('delete_reports_older_than', 9)

        self.assertEqual(self.store.get('delete_reports_older_than'), '9')
        records = self.store.fetch_all()
        self.assertEqual(records, [OptionRecord('delete_reports_older_than', '9', True)])

    def test_get_default(self):
        self.assertIsNone(self.store.get('missing'))
        self.assertEqual(self.store.get('missing', 'x'), 'x')

    def test_get_all_autoload(self):
        self.store.set('a', '1', autoload=True)
        self.store.set('b', '2', autoload=False)
        self.assertEqual(self.store.get_all_autoload(), {'a': '1'})

    def test_fetch_all_normalises_autoload(self):
        with self.db.connection() as conn:
            conn.execute('INSERT INTO "option" VALUES (?, ?, ?)', ('legacy_true', 'x', 't'))
            conn.execute('INSERT INTO "option" VALUES (?, ?, ?)', ('legacy_false', 'y', 'f'))

        records = {r.name: r.autoload for r in self.store.fetch_all()}
        self.assertEqual(records, {'legacy_false': False, 'legacy_true': True})

    def test_delete(self):
        self.store.set('a', '1')
        self.assertTrue(self.store.delete('a'))
        self.assertFalse(self.store.delete('a'))
        self.assertIsNone(self.store.get('a'))


if __name__ == '__main__':
    unittest.main()
