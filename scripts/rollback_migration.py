#!/usr/bin/env python3
"""
Removes everything a migration run created in one tenant.

Only rows flagged with ``wp_migrated = true`` are deleted, in this order:
media library, articles, pages, categories, tags, writers.  With
``--include-storage`` the stored image files behind the deleted media rows
are removed as well.

Usage:
  python scripts/rollback_migration.py --tenant <id> [--dry-run] [--include-storage] \
    [--config config/migration_config.json]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict

# Allow importing wp_migrator/ when run as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from wp_migrator.migration_tool import load_config  # noqa: E402
from wp_migrator.migrators.asset_storage import AssetStorage, LocalAssetStorage  # noqa: E402
from wp_migrator.migrators.destination_store import MIGRATED_COLLECTIONS, DestinationStore  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Delete migrated records of a tenant")
    p.add_argument("--tenant", required=True)
    p.add_argument("--dry-run", action="store_true", help="Only count what would be deleted")
    p.add_argument("--include-storage", action="store_true", help="Also delete the stored image files")
    p.add_argument("--config", default="config/migration_config.json")
    return p.parse_args(argv)


def delete_stored_files(store: DestinationStore, storage: AssetStorage, tenant_id: str, dry_run: bool) -> int:
    removed = 0
    for row in store.migrated_rows("media_library", tenant_id):
        for url in {row.get("url"), row.get("thumbnail_url")}:
            path = storage.path_for_url(url) if url else None
            if not path:
                continue
            if dry_run:
                print(f"  would delete file {path}")
                removed += 1
            elif storage.delete(path):
                removed += 1
    return removed


def rollback(
    store: DestinationStore,
    tenant_id: str,
    *,
    dry_run: bool = False,
    storage: AssetStorage = None,
) -> Dict[str, int]:
    """
    Delete the provenance-flagged rows of ``tenant_id``.  Returns the number
    of rows (and, under ``files``, stored files) per collection.
    """
    counts: Dict[str, int] = {}
    if storage is not None:
        counts["files"] = delete_stored_files(store, storage, tenant_id, dry_run)
    for collection in MIGRATED_COLLECTIONS:
        if dry_run:
            counts[collection] = store.count(collection, tenant_id, migrated_only=True)
        else:
            counts[collection] = store.delete_migrated(collection, tenant_id)
    return counts


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)

    with DestinationStore(config["destination"]["database_path"]) as store:
        if store.get_tenant(args.tenant) is None:
            print(f"[ERROR] Tenant '{args.tenant}' not found.")
            for t in store.list_tenants():
                print(f"  - {t['id']}: {t['name']}")
            return 1

        storage = None
        if args.include_storage:
            storage = LocalAssetStorage(config["storage"]["root_dir"], config["storage"]["public_base_url"])

        counts = rollback(store, args.tenant, dry_run=args.dry_run, storage=storage)

    verb = "Would delete" if args.dry_run else "Deleted"
    print("=" * 60)
    for collection, count in counts.items():
        print(f"{verb} {count} {collection}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
