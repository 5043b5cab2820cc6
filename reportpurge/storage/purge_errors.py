"""
Exceptions raised by the report purger.
"""


class PurgeError(Exception):
    """Base class for purger errors."""
    pass


class MissingSettingError(PurgeError, KeyError):
    """Raised when a required purge setting is absent."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Missing required purge setting: {self.key}"


class InvalidTableNameError(PurgeError, ValueError):
    """Raised when a table name is not a recognised archive table."""
    pass


class PurgeCancelledError(PurgeError):
    """Raised between batches when a purge run is cancelled."""

    def __init__(self, table: str, completed_batches: int):
        super().__init__(f"Purge cancelled on {table} after {completed_batches} batches")
        self.table = table
        self.completed_batches = completed_batches


class InvalidSettingError(PurgeError, ValueError):
    """Raised when a purge setting is present but unusable."""

    def __init__(self, key: str, value, reason: str):
        super().__init__(f"Invalid purge setting {key}={value!r}: {reason}")
        self.key = key
        self.value = value
