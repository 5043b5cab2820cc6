"""
Unit tests for purge metrics.
"""

from datetime import datetime

import pytest
from prometheus_client import CollectorRegistry

from reportpurge.monitoring.purge_metrics import PurgeMetrics
from reportpurge.storage.purge_models import DROP_TABLE, PurgeOperation


class TestPurgeMetrics:
    """Test cases for PurgeMetrics."""

    @pytest.fixture
    def metrics(self):
        return PurgeMetrics(CollectorRegistry())

    def _value(self, metrics, name, labels=None):
        return metrics.registry.get_sample_value(name, labels or {})

    def test_record_operation(self, metrics):
        operation = PurgeOperation(
            operation_id='purge_1',
            timestamp=datetime.now(),
            dry_run=False,
            status='success',
            duration_seconds=2.0,
            tables_dropped=['archive_numeric_2013_01', 'archive_blob_2012_12'],
            rows_deleted={'archive_blob_2013_01': 40, 'archive_numeric_2012_12': 0},
        )

        metrics.record_operation(operation)

        assert self._value(metrics, 'reportpurge_runs_total', {'status': 'success'}) == 1
        assert self._value(metrics, 'reportpurge_rows_deleted_total', {'kind': 'blob'}) == 40
        assert self._value(metrics, 'reportpurge_tables_dropped_total', {'kind': 'numeric'}) == 1
        assert self._value(metrics, 'reportpurge_tables_dropped_total', {'kind': 'blob'}) == 1
        assert self._value(metrics, 'reportpurge_run_duration_seconds_count') == 1

    def test_record_estimate(self, metrics):
        metrics.record_estimate({'a_blob': 10, 'b': 5, 'c': DROP_TABLE})

        assert self._value(metrics, 'reportpurge_estimated_rows') == 15
        assert self._value(metrics, 'reportpurge_tables_pending_drop') == 1

    def test_separate_registries_do_not_clash(self):
        first = PurgeMetrics()
        second = PurgeMetrics()
        assert first.registry is not second.registry

    def test_export(self, metrics):
        metrics.record_estimate({'archive_blob_2013_01': 3})
        output = metrics.export().decode('utf-8')
        assert 'reportpurge_estimated_rows 3.0' in output
