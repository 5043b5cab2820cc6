"""
Prometheus metrics for purge runs.

Each ``PurgeMetrics`` owns its registry, so several managers (or tests) can
record side by side without clashing on metric names.
"""

from typing import Dict, Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from reportpurge.storage.purge_models import DROP_TABLE, PurgeOperation

logger = structlog.get_logger(__name__)


class PurgeMetrics:
    """Collects counters and gauges describing purge runs."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self.logger = structlog.get_logger(__name__)
        self._setup_prometheus_metrics()

    def _setup_prometheus_metrics(self) -> None:
        self.rows_deleted_counter = Counter(
            'reportpurge_rows_deleted_total',
            'Archive rows deleted by purge runs',
            ['kind'],
            registry=self.registry
        )
        self.tables_dropped_counter = Counter(
            'reportpurge_tables_dropped_total',
            'Archive tables dropped by purge runs',
            ['kind'],
            registry=self.registry
        )
        self.runs_counter = Counter(
            'reportpurge_runs_total',
            'Purge runs by final status',
            ['status'],
            registry=self.registry
        )
        self.estimated_rows_gauge = Gauge(
            'reportpurge_estimated_rows',
            'Rows the last estimate would delete',
            registry=self.registry
        )
        self.pending_drop_gauge = Gauge(
            'reportpurge_tables_pending_drop',
            'Tables the last estimate would drop',
            registry=self.registry
        )
        self.run_duration_histogram = Histogram(
            'reportpurge_run_duration_seconds',
            'Duration of purge runs',
            buckets=[0.1, 0.5, 1.0, 5.0, 30.0, 60.0, 300.0, 1800.0, 3600.0],
            registry=self.registry
        )

    def record_estimate(self, estimate: Dict[str, int]) -> None:
        rows = sum(count for count in estimate.values() if count != DROP_TABLE)
        drops = sum(1 for count in estimate.values() if count == DROP_TABLE)
        self.estimated_rows_gauge.set(rows)
        self.pending_drop_gauge.set(drops)
        self.logger.info("Purge estimate recorded", rows=rows, tables_to_drop=drops)

    def record_operation(self, operation: PurgeOperation) -> None:
        self.runs_counter.labels(status=operation.status).inc()
        self.run_duration_histogram.observe(operation.duration_seconds)

        for table_name in operation.tables_dropped:
            self.tables_dropped_counter.labels(kind=_table_kind(table_name)).inc()
        for table_name, rows in operation.rows_deleted.items():
            if rows > 0:
                self.rows_deleted_counter.labels(kind=_table_kind(table_name)).inc(rows)

        if operation.estimate:
            self.record_estimate(operation.estimate)

        self.logger.info(
            "Purge run recorded",
            operation_id=operation.operation_id,
            status=operation.status,
            dry_run=operation.dry_run,
            rows_deleted=operation.total_rows_deleted,
            tables_dropped=len(operation.tables_dropped),
            duration_seconds=round(operation.duration_seconds, 3)
        )

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)


def _table_kind(table_name: str) -> str:
    return 'blob' if '_blob_' in table_name else 'numeric'
