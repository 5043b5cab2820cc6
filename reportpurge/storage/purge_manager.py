"""
Main purge manager - orchestrates report purging.

This is the entry point that ties configuration, option overrides, the
purger, audit logging and metrics together.
"""

import asyncio
import logging
import threading
import time
from datetime import date, datetime
from typing import Any, Dict, Optional

from reportpurge.monitoring.purge_metrics import PurgeMetrics

from .archive_tables import ArchiveTableCatalog, ArchiveSchema
from .batch_query import BatchQueryRunner
from .database import ArchiveDatabase
from .option_store import OptionStore
from .purge_config import PurgeConfigManager, policy_from_settings, parse_flag
from .purge_errors import PurgeCancelledError, PurgeError
from .purge_logging import PurgeLogger
from .purge_models import DROP_TABLE, PurgeOperation, RetentionPolicy, TableKind
from .reports_purger import ReportsPurger

logger = logging.getLogger(__name__)

LAST_PURGE_OPTION = 'last_reports_purge'


class PurgeManager:
    """
    Runs report purges according to the configuration file.

    Purge settings come from the ``purge`` section of the YAML file; any
    option stored under the same name overrides the file value.
    """

    def __init__(self, config_path: str, db_path: str, metrics: Optional[PurgeMetrics] = None):
        self.config_path = config_path
        self.db_path = db_path

        self.config_manager = PurgeConfigManager(config_path)
        self.db = ArchiveDatabase(db_path)
        self.options = OptionStore(self.db)
        self.options.create_table()
        self.catalog = ArchiveTableCatalog(self.db, self.config_manager.get_table_prefix())
        self.schema = ArchiveSchema(self.db, self.catalog, self.config_manager.vacuum_after_optimize())
        self.purge_logger = PurgeLogger(self.config_manager.get_logs_dir())
        self.metrics = metrics or PurgeMetrics()
        self.cancel_event = threading.Event()

        logger.info(f"Purge Manager initialized with config from {config_path}")

    def get_settings(self) -> Dict[str, Any]:
        settings = self.config_manager.get_purge_settings()
        settings.update(
            (record.name, record.value)
            for record in self.options.fetch_all()
            if record.name.startswith('delete_')
        )
        return settings

    def build_policy(self) -> RetentionPolicy:
        return policy_from_settings(
            self.get_settings(),
            self.config_manager.get_metrics_to_keep(),
            self.config_manager.get_select_batch_size()
        )

    def create_purger(self, policy: Optional[RetentionPolicy] = None,
                      today: Optional[date] = None) -> ReportsPurger:
        """Create a purger for one run; its segment archive cache lives and dies with it."""
        runner = BatchQueryRunner(self.db, self.cancel_event)
        return ReportsPurger(policy or self.build_policy(), self.catalog, runner, self.schema, today=today)

    def get_last_purge_time(self) -> Optional[datetime]:
        value = self.options.get(LAST_PURGE_OPTION)
        if value is None:
            return None
        return datetime.fromtimestamp(float(value))

    def is_purge_due(self, now: Optional[datetime] = None) -> bool:
        """True if scheduled purging is enabled and the interval has elapsed."""
        if not parse_flag(self.get_settings().get('delete_reports_enable', 0)):
            return False

        last_purge = self.get_last_purge_time()
        if last_purge is None:
            return True

        now = now or datetime.now()
        interval_seconds = self.config_manager.get_schedule_interval_days() * 86400
        return (now - last_purge).total_seconds() >= interval_seconds

    def cancel(self):
        """Stop the running purge after its current batch."""
        self.cancel_event.set()

    async def estimate(self, today: Optional[date] = None) -> Dict[str, int]:
        purger = self.create_purger(today=today)
        estimate = await asyncio.to_thread(purger.estimate)
        self.metrics.record_estimate(estimate)
        return estimate

    async def run_purge(self, dry_run: Optional[bool] = None, optimize: Optional[bool] = None,
                        force: bool = False, today: Optional[date] = None,
                        now: Optional[datetime] = None) -> PurgeOperation:
        """
        Run one purge (or, with ``dry_run``, one estimate).

        ``dry_run`` defaults to the ``global.dry_run`` setting. Without
        ``force`` a real purge only runs when ``is_purge_due()``. Errors
        are logged, recorded as a failed operation and re-raised.
        """
        now = now or datetime.now()
        if dry_run is None:
            dry_run = self.config_manager.is_dry_run()
        operation = PurgeOperation(
            operation_id=f"purge_{now.strftime('%Y%m%d_%H%M%S')}",
            timestamp=now,
            dry_run=dry_run,
            status='success'
        )

        if not self.config_manager.is_enabled():
            logger.info("Report purging is disabled")
            operation.status = 'skipped'
            operation.error_message = 'disabled in configuration'
            return operation

        if not dry_run and not force and not self.is_purge_due(now):
            logger.info("Report purge not due yet")
            operation.status = 'skipped'
            operation.error_message = 'not due'
            return operation

        if optimize is None:
            optimize = self.config_manager.optimize_after_purge()

        self.cancel_event.clear()
        policy = self.build_policy()
        purger = self.create_purger(policy, today=today)
        start = time.monotonic()

        logger.info(f"Starting report purge (dry_run={dry_run}, optimize={optimize})")
        try:
            if dry_run:
                operation.estimate = await asyncio.to_thread(purger.estimate)
            else:
                result = await asyncio.to_thread(purger.purge, optimize)
                for table_name, outcome in result.items():
                    if outcome == DROP_TABLE:
                        operation.tables_dropped.append(table_name)
                    else:
                        operation.rows_deleted[table_name] = outcome
                if optimize:
                    operation.tables_optimized = list(operation.rows_deleted)
                self.options.set(LAST_PURGE_OPTION, str(now.timestamp()))
        except PurgeCancelledError as e:
            operation.status = 'cancelled'
            operation.error_message = str(e)
        except Exception as e:
            operation.status = 'failed'
            operation.error_message = str(e)
            raise
        finally:
            operation.duration_seconds = time.monotonic() - start
            self.purge_logger.log_purge_operation(operation, policy)
            self.purge_logger.create_summary_report([operation])
            self.metrics.record_operation(operation)

        return operation

    def get_status(self) -> Dict[str, Any]:
        """Get current purger status."""
        tables = self.catalog.list_archive_tables()
        last_purge = self.get_last_purge_time()
        status = {
            'enabled': self.config_manager.is_enabled(),
            'scheduled_purge_enabled': parse_flag(self.get_settings().get('delete_reports_enable', 0)),
            'last_purge': last_purge.isoformat() if last_purge else None,
            'interval_days': self.config_manager.get_schedule_interval_days(),
            'archive_tables': {
                'numeric': len([t for t in tables if t.kind == TableKind.NUMERIC]),
                'blob': len([t for t in tables if t.kind == TableKind.BLOB]),
            },
        }
        try:
            status['policy'] = self.build_policy().to_dict()
        except PurgeError as e:
            status['policy'] = None
            status['error'] = str(e)
        return status


def create_purge_manager(config_path: str, db_path: str) -> PurgeManager:
    """Create a new PurgeManager instance."""
    return PurgeManager(config_path, db_path)
