"""
Monitoring for the report purger.

Prometheus metrics and structured log events for purge runs.
"""

from .purge_metrics import PurgeMetrics

__all__ = ['PurgeMetrics']
