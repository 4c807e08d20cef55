#!/usr/bin/env python3
"""
Exports the rows created by the migrator in one tenant, one CSV per collection.

Usage:
  python scripts/export_provenance.py --tenant <id> --output reports/provenance \
    [--config config/migration_config.json]
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Dict

# Allow importing wp_migrator/ when run as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from wp_migrator.migration_tool import load_config  # noqa: E402
from wp_migrator.migrators.destination_store import MIGRATED_COLLECTIONS, DestinationStore  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Export migrated rows of a tenant to CSV")
    p.add_argument("--tenant", required=True)
    p.add_argument("--output", default="reports/provenance")
    p.add_argument("--config", default="config/migration_config.json")
    return p.parse_args(argv)


def export_provenance(store: DestinationStore, tenant_id: str, output_dir: str) -> Dict[str, str]:
    """Write ``<collection>.csv`` files and return their paths keyed by collection."""
    os.makedirs(output_dir, exist_ok=True)
    written: Dict[str, str] = {}
    for collection in MIGRATED_COLLECTIONS:
        df = store.migrated_frame(collection, tenant_id)
        path = os.path.join(output_dir, f"{collection}.csv")
        df.to_csv(path, index=False)
        written[collection] = path
        print(f"{collection}: {len(df)} rows -> {path}")
    return written


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)
    with DestinationStore(config["destination"]["database_path"], read_only=True) as store:
        export_provenance(store, args.tenant, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
