"""
Logging and reporting for purge runs.

This module writes the per-run audit log and summary reports.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List

from .purge_models import DROP_TABLE, PurgeOperation, RetentionPolicy

logger = logging.getLogger(__name__)


class PurgeLogger:
    """Handles logging and reporting for purge operations."""

    def __init__(self, logs_dir: str = "logs/purge"):
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def log_purge_operation(self, operation: PurgeOperation, policy: RetentionPolicy) -> Dict[str, Any]:
        """Log a purge run and store its audit entry."""
        log_entry = {
            "operation_id": operation.operation_id,
            "timestamp": operation.timestamp.isoformat(),
            "dry_run": operation.dry_run,
            "status": operation.status,
            "tables_dropped": list(operation.tables_dropped),
            "rows_deleted": dict(operation.rows_deleted),
            "total_rows_deleted": operation.total_rows_deleted,
            "tables_optimized": list(operation.tables_optimized),
            "estimate": dict(operation.estimate),
            "duration_seconds": operation.duration_seconds,
            "duration_formatted": self._format_duration(operation.duration_seconds),
            "error_message": operation.error_message,
            "retention_policy_applied": policy.to_dict() if policy else None,
        }

        if operation.status == 'success' and operation.dry_run:
            logger.info(f"Purge estimate: {self._summarize_estimate(operation.estimate)}")
        elif operation.status == 'success':
            logger.info(f"Purge completed: {len(operation.tables_dropped)} tables dropped, "
                        f"{operation.total_rows_deleted} rows deleted in {log_entry['duration_formatted']}")
        elif operation.status == 'failed':
            logger.error(f"Purge failed: {operation.error_message}")
        else:
            logger.warning(f"Purge {operation.status}: {operation.error_message or 'no details'}")

        self._store_operation_log(log_entry)
        return log_entry

    def _summarize_estimate(self, estimate: Dict[str, int]) -> str:
        drops = sum(1 for count in estimate.values() if count == DROP_TABLE)
        rows = sum(count for count in estimate.values() if count != DROP_TABLE)
        return f"{drops} tables to drop, {rows} rows to delete"

    def _format_duration(self, duration_seconds: float) -> str:
        """Format duration in a human-readable format."""
        if duration_seconds < 60:
            return f"{duration_seconds:.2f}s"
        elif duration_seconds < 3600:
            return f"{duration_seconds / 60:.1f}m"
        else:
            return f"{duration_seconds / 3600:.1f}h"

    def _store_operation_log(self, log_entry: Dict[str, Any]):
        """Append the entry to today's JSONL audit file."""
        log_date = datetime.now().strftime("%Y-%m-%d")
        log_file = self.logs_dir / f"purge_operations_{log_date}.jsonl"

        try:
            with open(log_file, 'a') as f:
                f.write(json.dumps(log_entry) + '\n')
        except OSError as e:
            logger.error(f"Failed to store operation log: {e}")

    def create_summary_report(self, operations: List[PurgeOperation]) -> Dict[str, Any]:
        """Create and save a summary report over several purge runs."""
        completed = [op for op in operations if op.status == 'success' and not op.dry_run]
        by_status: Dict[str, int] = {}
        for op in operations:
            by_status[op.status] = by_status.get(op.status, 0) + 1

        report = {
            "report_metadata": {
                "generated_at": datetime.now().isoformat(),
                "report_type": "purge_summary",
                "total_operations": len(operations),
            },
            "overall_summary": {
                "total_rows_deleted": sum(op.total_rows_deleted for op in completed),
                "total_tables_dropped": sum(len(op.tables_dropped) for op in completed),
                "total_duration_seconds": sum(op.duration_seconds for op in operations),
                "operations_by_status": by_status,
            },
            "operation_details": [
                {
                    "operation_id": op.operation_id,
                    "dry_run": op.dry_run,
                    "status": op.status,
                    "rows_deleted": op.total_rows_deleted,
                    "tables_dropped": len(op.tables_dropped),
                    "error_message": op.error_message,
                }
                for op in operations
            ],
        }

        self._save_summary_report(report)
        return report

    def _save_summary_report(self, report: Dict[str, Any]):
        reports_dir = self.logs_dir / "reports"
        reports_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        report_file = reports_dir / f"purge_summary_{timestamp}.json"

        try:
            with open(report_file, 'w') as f:
                json.dump(report, f, indent=2)
            logger.info(f"Purge summary report saved: {report_file}")
        except OSError as e:
            logger.error(f"Failed to save summary report: {e}")
