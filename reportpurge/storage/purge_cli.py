"""
Report purge CLI.

Command-line interface for estimating and running archive purges and for
managing the stored purge options.
"""

import argparse
import asyncio
import logging
import sqlite3
import sys
from pathlib import Path

from .purge_config import PurgeConfigManager
from .purge_errors import PurgeError
from .purge_manager import create_purge_manager
from .purge_models import DROP_TABLE


def setup_logging(verbose: bool = False, level: str = 'INFO',
                  log_file: str = 'logs/purge/purge_cli.log'):
    """Setup logging configuration; ``verbose`` forces DEBUG."""
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def print_estimate(estimate):
    if not estimate:
        print("Nothing to purge")
        return

    total_rows = 0
    for table_name, count in estimate.items():
        if count == DROP_TABLE:
            print(f"  {table_name}: DROP TABLE")
        else:
            total_rows += count
            print(f"  {table_name}: {count:,} rows")

    drops = sum(1 for count in estimate.values() if count == DROP_TABLE)
    print(f"\nTables to drop: {drops}")
    print(f"Rows to delete: {total_rows:,}")


async def run_purge(args) -> int:
    """Run (or simulate) a purge."""
    manager = create_purge_manager(args.config, args.db)

    print("Starting report purge...")
    operation = await manager.run_purge(
        dry_run=True if args.dry_run else None,
        optimize=True if args.optimize else None,
        force=args.force
    )

    if operation.status == 'skipped':
        print(f"Purge skipped: {operation.error_message}")
        return 0
    if operation.status != 'success':
        print(f"Purge {operation.status}: {operation.error_message}")
        return 1

    if operation.dry_run:
        print_estimate(operation.estimate)
    else:
        for table_name in operation.tables_dropped:
            print(f"✓ dropped {table_name}")
        for table_name, rows in operation.rows_deleted.items():
            print(f"✓ {table_name}: {rows:,} rows deleted")
        print(f"\nPurge completed in {operation.duration_seconds:.2f}s")
    return 0


async def show_estimate(args) -> int:
    manager = create_purge_manager(args.config, args.db)
    print("Purge Estimate")
    print("=" * 40)
    print_estimate(await manager.estimate())
    return 0


def show_policy(args) -> int:
    manager = create_purge_manager(args.config, args.db)
    policy = manager.build_policy()

    print("Report Retention Policy")
    print("=" * 40)
    for key, value in policy.to_dict().items():
        print(f"  {key}: {value}")
    return 0


def show_status(args) -> int:
    manager = create_purge_manager(args.config, args.db)
    status = manager.get_status()

    print("Report Purge Status")
    print("=" * 40)
    print(f"Enabled: {status['enabled']}")
    print(f"Scheduled purge: {status['scheduled_purge_enabled']} (every {status['interval_days']} days)")
    print(f"Last purge: {status['last_purge'] or 'Never'}")
    print(f"Archive tables: {status['archive_tables']['numeric']} numeric, "
          f"{status['archive_tables']['blob']} blob")
    if status.get('error'):
        print(f"Policy error: {status['error']}")
    return 0


def manage_options(args) -> int:
    manager = create_purge_manager(args.config, args.db)

    if args.options_command == 'set':
        manager.options.set(args.name, args.value, autoload=args.autoload)
        print(f"{args.name} = {args.value}")
    else:
        for record in manager.options.fetch_all():
            flag = " (autoload)" if record.autoload else ""
            print(f"{record.name} = {record.value}{flag}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Archived report purge CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what would be purged
  reportpurge estimate --config configs/purge.yaml --db data/archive.db

  # Purge now, ignoring the schedule, and optimize trimmed tables
  reportpurge purge --force --optimize --config configs/purge.yaml --db data/archive.db

  # Keep daily reports from now on
  reportpurge options set delete_reports_keep_day_reports 1
        """
    )

    parser.add_argument('--config', default='configs/purge.yaml',
                        help='Path to purge configuration file')
    parser.add_argument('--db', default='data/archive.db',
                        help='Path to SQLite database file')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    purge_parser = subparsers.add_parser('purge', help='Purge old archives')
    purge_parser.add_argument('--dry-run', action='store_true',
                              help='Estimate only, delete nothing (default: global.dry_run)')
    purge_parser.add_argument('--optimize', action='store_true',
                              help='Optimize tables that had rows deleted')
    purge_parser.add_argument('--force', action='store_true',
                              help='Run even if the scheduled purge is not due')

    subparsers.add_parser('estimate', help='Show what a purge would delete')
    subparsers.add_parser('policy', help='Show the effective retention policy')
    subparsers.add_parser('status', help='Show purge status')

    options_parser = subparsers.add_parser('options', help='List or set stored options')
    options_sub = options_parser.add_subparsers(dest='options_command')
    options_sub.add_parser('list', help='List stored options')
    set_parser = options_sub.add_parser('set', help='Set an option')
    set_parser.add_argument('name')
    set_parser.add_argument('value')
    set_parser.add_argument('--autoload', action='store_true')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = PurgeConfigManager(args.config)
    setup_logging(args.verbose, config.get_log_level(),
                  str(Path(config.get_logs_dir()) / 'purge_cli.log'))

    try:
        if args.command == 'purge':
            return asyncio.run(run_purge(args))
        elif args.command == 'estimate':
            return asyncio.run(show_estimate(args))
        elif args.command == 'policy':
            return show_policy(args)
        elif args.command == 'status':
            return show_status(args)
        elif args.command == 'options':
            return manage_options(args)
        else:
            print(f"Unknown command: {args.command}")
            return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except (PurgeError, sqlite3.Error) as e:
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
