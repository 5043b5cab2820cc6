"""
Configuration management for the report purger.

This module loads the YAML configuration and turns the flat purge settings
map into a ``RetentionPolicy``.
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Any, Iterable, List, Mapping, Tuple

import yaml

from .purge_errors import InvalidSettingError, MissingSettingError
from .purge_models import PERIOD_IDS, RetentionPolicy, DEFAULT_SELECT_BATCH_SIZE

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = (
    'delete_reports_older_than',
    'delete_reports_keep_basic_metrics',
    'delete_reports_keep_segment_reports',
    'delete_logs_max_rows_per_query',
) + tuple(f"delete_reports_keep_{period}_reports" for period in PERIOD_IDS)

DEFAULT_CONFIG: Dict[str, Any] = {
    'global': {
        'enabled': True,
        'dry_run': False,
        'table_prefix': '',
    },
    'purge': {
        'delete_reports_enable': False,
        'delete_reports_older_than': 12,
        'delete_reports_keep_basic_metrics': 1,
        'delete_reports_keep_day_reports': 0,
        'delete_reports_keep_week_reports': 0,
        'delete_reports_keep_month_reports': 1,
        'delete_reports_keep_year_reports': 1,
        'delete_reports_keep_range_reports': 0,
        'delete_reports_keep_segment_reports': 0,
        'delete_logs_max_rows_per_query': 100000,
    },
    'metrics_to_keep': [
        'nb_uniq_visitors',
        'nb_visits',
        'nb_actions',
        'max_actions',
        'sum_visit_length',
        'bounce_count',
        'nb_visits_converted',
        'nb_conversions',
        'revenue',
    ],
    'batching': {
        'select_batch_size': DEFAULT_SELECT_BATCH_SIZE,
    },
    'schedule': {
        'interval_days': 7,
    },
    'optimize': {
        'after_purge': False,
        'vacuum': False,
    },
    'logging': {
        'logs_dir': 'logs/purge',
        'level': 'INFO',
    },
}


def parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value) and int(value) == 1


def _require(settings: Mapping[str, Any], key: str) -> Any:
    try:
        return settings[key]
    except KeyError:
        raise MissingSettingError(key) from None


def _int_setting(key: str, value: Any, minimum: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidSettingError(key, value, "not an integer") from None
    if number < minimum:
        raise InvalidSettingError(key, value, f"must be at least {minimum}")
    return number


def get_report_periods_to_keep(settings: Mapping[str, Any]) -> Tuple[int, ...]:
    """Return the period codes whose ``delete_reports_keep_<period>_reports`` flag is set."""
    return tuple(
        period_id
        for period, period_id in PERIOD_IDS.items()
        if parse_flag(_require(settings, f"delete_reports_keep_{period}_reports"))
    )


def policy_from_settings(settings: Mapping[str, Any], metrics_to_keep: Iterable[str],
                         select_batch_size: int = DEFAULT_SELECT_BATCH_SIZE) -> RetentionPolicy:
    """
    Build a retention policy from a flat settings map.

    Every key in ``REQUIRED_SETTINGS`` must be present; a missing key raises
    ``MissingSettingError`` instead of falling back to a default, and a
    non-numeric or out-of-range count raises ``InvalidSettingError``.
    """
    missing = [key for key in REQUIRED_SETTINGS if key not in settings]
    if missing:
        raise MissingSettingError(missing[0])

    return RetentionPolicy(
        older_than_months=_int_setting(
            'delete_reports_older_than', settings['delete_reports_older_than'], 0),
        keep_basic_metrics=parse_flag(settings['delete_reports_keep_basic_metrics']),
        periods_to_keep=get_report_periods_to_keep(settings),
        keep_segment_reports=parse_flag(settings['delete_reports_keep_segment_reports']),
        metrics_to_keep=tuple(metrics_to_keep),
        max_rows_per_delete=_int_setting(
            'delete_logs_max_rows_per_query', settings['delete_logs_max_rows_per_query'], 1),
        select_batch_size=_int_setting('select_batch_size', select_batch_size, 1)
    )


class PurgeConfigManager:
    """Manages the purger configuration file."""

    def __init__(self, config_path: str):
        self.config_path = Path(config_path)
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            if self.config_path.exists():
                with open(self.config_path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            else:
                logger.warning(f"Config file not found at {self.config_path}. Using defaults.")
                config_data = self.get_default_config()
                self._save_config(config_data)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config: {e}")
            config_data = {}

        return self._merge_defaults(config_data)

    def _merge_defaults(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        merged = self.get_default_config()
        for section, value in config_data.items():
            if isinstance(value, dict) and isinstance(merged.get(section), dict):
                merged[section].update(value)
            else:
                merged[section] = value
        return merged

    @staticmethod
    def get_default_config() -> Dict[str, Any]:
        return copy.deepcopy(DEFAULT_CONFIG)

    def _save_config(self, config_data: Dict[str, Any]):
        """Save configuration to YAML file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(config_data, f, default_flow_style=False, indent=2)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")

    def is_enabled(self) -> bool:
        return bool(self.config['global'].get('enabled', True))

    def is_dry_run(self) -> bool:
        return bool(self.config['global'].get('dry_run', False))

    def get_purge_settings(self) -> Dict[str, Any]:
        return dict(self.config.get('purge') or {})

    def get_metrics_to_keep(self) -> List[str]:
        return list(self.config.get('metrics_to_keep') or [])

    def get_select_batch_size(self) -> Any:
        return self.config['batching'].get('select_batch_size', DEFAULT_SELECT_BATCH_SIZE)

    def get_schedule_interval_days(self) -> int:
        return int(self.config['schedule'].get('interval_days', 7))

    def get_table_prefix(self) -> str:
        return str(self.config['global'].get('table_prefix') or '')

    def get_logs_dir(self) -> str:
        return str(self.config['logging'].get('logs_dir', 'logs/purge'))

    def get_log_level(self) -> str:
        return str(self.config['logging'].get('level') or 'INFO').upper()

    def optimize_after_purge(self) -> bool:
        return bool(self.config['optimize'].get('after_purge', False))

    def vacuum_after_optimize(self) -> bool:
        return bool(self.config['optimize'].get('vacuum', False))
