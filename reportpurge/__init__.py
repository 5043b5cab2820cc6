"""
reportpurge - Retention purger for archived analytics reports.

This package contains the components that decide which month-partitioned
archive tables (or rows inside them) are old enough to delete, and that
delete them in bounded batches.
"""

__version__ = "0.1.0"
