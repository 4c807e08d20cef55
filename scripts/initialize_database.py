#!/usr/bin/env python3
"""
Initializes the DuckDB destination store and optionally registers a tenant.

Usage:
  python scripts/initialize_database.py [--config config/migration_config.json] \
    [--tenant-name "My Media"] [--tenant-slug my-media] [--tenant-id <id>] \
    [--tenants-csv docs/tenants.csv]

The CSV, when given, must have ``name`` and ``slug`` columns (``id`` optional).
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import pandas as pd

# Allow importing wp_migrator/ when run as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from wp_migrator.migration_tool import load_config  # noqa: E402
from wp_migrator.migrators.destination_store import DestinationStore  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the destination schema and register tenants")
    p.add_argument("--config", default="config/migration_config.json")
    p.add_argument("--db", default=None, help="Database path (default: destination.database_path)")
    p.add_argument("--tenant-name", default=None)
    p.add_argument("--tenant-slug", default=None)
    p.add_argument("--tenant-id", default=None)
    p.add_argument("--tenants-csv", default=None, help="CSV with name,slug[,id] columns")
    return p.parse_args(argv)


def initialize_database(db_path: str, tenants: list) -> list:
    """
    Creates the schema (idempotent) and registers every tenant that is not
    already present.  Returns the IDs of the registered tenants.
    """
    if db_path != ":memory:":
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)

    created = []
    with DestinationStore(db_path) as store:
        print(f"Schema ready at {db_path}")
        existing = {t["id"] for t in store.list_tenants()}
        for tenant in tenants:
            if tenant.get("id") and tenant["id"] in existing:
                print(f"Tenant '{tenant['id']}' already exists. Nothing to do.")
                continue
            tenant_id = store.create_tenant(tenant["name"], tenant.get("slug"), tenant.get("id"))
            created.append(tenant_id)
            print(f"Tenant '{tenant['name']}' registered with id {tenant_id}")
        for t in store.list_tenants():
            print(f"  - {t['id']}: {t['name']} (slug: {t['slug']})")
    return created


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config)
    db_path = args.db or config["destination"]["database_path"]

    tenants = []
    if args.tenants_csv:
        df = pd.read_csv(args.tenants_csv)
        df.columns = [col.strip().lower() for col in df.columns]
        df = df.astype(object).where(pd.notna(df), None)
        tenants.extend(df.to_dict("records"))
    if args.tenant_name:
        tenants.append({"name": args.tenant_name, "slug": args.tenant_slug, "id": args.tenant_id})

    initialize_database(db_path, tenants)
    return 0


if __name__ == "__main__":
    sys.exit(main())
