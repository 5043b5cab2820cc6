"""
Data models for the report purger.

This module contains the data classes, enums and constants shared by the
archive catalog, the purger and its reporting.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple

# Purge estimate value meaning "the whole table will be dropped".
DROP_TABLE = -1

# Period codes as stored in the archive tables, in resolution order.
PERIOD_IDS = OrderedDict([
    ('day', 1),
    ('week', 2),
    ('month', 3),
    ('year', 4),
    ('range', 5),
])

DEFAULT_SELECT_BATCH_SIZE = 100000


class TableKind(Enum):
    """Kinds of archive tables."""
    NUMERIC = "numeric"
    BLOB = "blob"


class PurgeAction(Enum):
    """What happens to an old archive table."""
    DROP_TABLE = "drop_table"
    DELETE_ROWS = "delete_rows"


@dataclass(frozen=True)
class ArchiveTableRef:
    """One month partition of the archive."""
    table_name: str
    kind: TableKind
    year: int
    month: int

    @property
    def year_month(self) -> str:
        return f"{self.year:04d}_{self.month:02d}"


@dataclass(frozen=True)
class RetentionPolicy:
    """Retention settings for a single purge run."""
    older_than_months: int
    keep_basic_metrics: bool
    periods_to_keep: Tuple[int, ...]
    keep_segment_reports: bool
    metrics_to_keep: Tuple[str, ...]
    max_rows_per_delete: int
    select_batch_size: int = DEFAULT_SELECT_BATCH_SIZE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'older_than_months': self.older_than_months,
            'keep_basic_metrics': self.keep_basic_metrics,
            'periods_to_keep': list(self.periods_to_keep),
            'keep_segment_reports': self.keep_segment_reports,
            'metrics_to_keep': list(self.metrics_to_keep),
            'max_rows_per_delete': self.max_rows_per_delete,
            'select_batch_size': self.select_batch_size,
        }


@dataclass
class PurgeClassification:
    """Decision taken for one old archive table."""
    table: ArchiveTableRef
    action: PurgeAction
    where: Optional[Any] = None  # SqlFragment, None means every row


@dataclass
class PurgeOperation:
    """Represents a single purge run."""
    operation_id: str
    timestamp: datetime
    dry_run: bool
    status: str  # 'success', 'failed', 'skipped', 'cancelled'
    duration_seconds: float = 0.0
    tables_dropped: List[str] = field(default_factory=list)
    rows_deleted: Dict[str, int] = field(default_factory=dict)
    tables_optimized: List[str] = field(default_factory=list)
    estimate: Dict[str, int] = field(default_factory=dict)
    error_message: Optional[str] = None

    @property
    def total_rows_deleted(self) -> int:
        return sum(self.rows_deleted.values())


@dataclass
class OptionRecord:
    """A row of the option table."""
    name: str
    value: str
    autoload: bool
