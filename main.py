"""
Entry point for the WordPress to content store migration tool.

Usage::

    python main.py --tenant <tenant-id> [--dry-run] [--limit N] [--pages] [--config PATH]
"""

import argparse
import sys

from wp_migrator.migration_tool import ContentMigrationTool
from wp_migrator.utils.pre_flight_checks import PreFlightCheckError

CONFIG_FILE = "config/migration_config.json"


def non_negative_int(value):
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be 0 or greater, got {value}")
    return number


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Migrate a WordPress site into a destination tenant.")
    parser.add_argument("--tenant", required=True, help="ID of the destination tenant")
    parser.add_argument("--dry-run", action="store_true", help="Read and transform everything, write nothing")
    parser.add_argument("--limit", type=non_negative_int, default=None, help="Maximum number of items per content type")
    parser.add_argument("--pages", action="store_true", help="Also migrate static pages and their hierarchy")
    parser.add_argument("--config", default=CONFIG_FILE, help=f"Configuration file (default: {CONFIG_FILE})")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main function to run the migration tool.  Returns the process exit code.
    """
    args = parse_args(argv)
    tool = ContentMigrationTool(config_file=args.config)
    tool.log_message("Starting WordPress migration.")
    try:
        tool.run(
            args.tenant,
            dry_run=True if args.dry_run else None,
            limit=args.limit,
            include_pages=True if args.pages else None,
        )
    except PreFlightCheckError as e:
        tool.log_message(str(e), level="ERROR")
        return 1
    finally:
        tool.close()

    tool.log_message("Migration process finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
