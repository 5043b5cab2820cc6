"""
Storage layer for the report purger.

Archive table catalog, batched query primitives, option storage and the
purger itself.
"""

from .purge_models import (
    DROP_TABLE, PERIOD_IDS, TableKind, ArchiveTableRef, RetentionPolicy,
    PurgeAction, PurgeClassification, PurgeOperation, OptionRecord
)
from .purge_errors import (
    PurgeError, MissingSettingError, InvalidSettingError, InvalidTableNameError, PurgeCancelledError
)
from .reports_purger import ReportsPurger

__all__ = [
    'DROP_TABLE',
    'PERIOD_IDS',
    'TableKind',
    'ArchiveTableRef',
    'RetentionPolicy',
    'PurgeAction',
    'PurgeClassification',
    'PurgeOperation',
    'OptionRecord',
    'PurgeError',
    'MissingSettingError',
    'InvalidSettingError',
    'InvalidTableNameError',
    'PurgeCancelledError',
    'ReportsPurger',
]
