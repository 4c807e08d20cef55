"""
DuckDB implementation of the multi-tenant destination content store.

Tables mirror the collections of the destination platform: ``tenants``,
``articles``, ``pages``, ``categories``, ``tags``, ``writers`` and
``media_library``.  Every row created by the migrator carries the
provenance columns ``wp_migrated``, ``wp_migrated_at`` and
``wp_original_id`` so migrated data can be audited and rolled back.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional

import duckdb

from ..models.destination import AssetRecord, DestinationContentRecord, utcnow

CONTENT_TABLES = {"article": "articles", "page": "pages"}
REFERENCE_TABLES = {"category": "categories", "tag": "tags", "writer": "writers"}
MIGRATED_COLLECTIONS = ("media_library", "articles", "pages", "categories", "tags", "writers")

_PROVENANCE = """
    wp_migrated BOOLEAN DEFAULT FALSE,
    wp_migrated_at TIMESTAMP,
    wp_original_id BIGINT
"""

_CONTENT_COLUMNS = """
    id VARCHAR PRIMARY KEY,
    tenant_id VARCHAR NOT NULL,
    slug VARCHAR NOT NULL,
    title VARCHAR,
    content VARCHAR,
    excerpt VARCHAR,
    category_ids VARCHAR,
    tag_ids VARCHAR,
    writer_id VARCHAR,
    writer_name VARCHAR,
    featured_image VARCHAR,
    is_published BOOLEAN,
    published_at TIMESTAMP,
    meta_title VARCHAR,
    meta_description VARCHAR,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
"""

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS tenants (
        id VARCHAR PRIMARY KEY,
        name VARCHAR NOT NULL,
        slug VARCHAR,
        created_at TIMESTAMP
    )
    """,
    f"CREATE TABLE IF NOT EXISTS articles ({_CONTENT_COLUMNS} {_PROVENANCE})",
    f"""
    CREATE TABLE IF NOT EXISTS pages ({_CONTENT_COLUMNS}
        parent_id VARCHAR,
        sort_order INTEGER DEFAULT 0,
        {_PROVENANCE})
    """,
    f"""
    CREATE TABLE IF NOT EXISTS categories (
        id VARCHAR PRIMARY KEY,
        tenant_id VARCHAR NOT NULL,
        name VARCHAR NOT NULL,
        slug VARCHAR NOT NULL,
        description VARCHAR DEFAULT '',
        created_at TIMESTAMP,
        {_PROVENANCE})
    """,
    f"""
    CREATE TABLE IF NOT EXISTS tags (
        id VARCHAR PRIMARY KEY,
        tenant_id VARCHAR NOT NULL,
        name VARCHAR NOT NULL,
        slug VARCHAR NOT NULL,
        created_at TIMESTAMP,
        {_PROVENANCE})
    """,
    f"""
    CREATE TABLE IF NOT EXISTS writers (
        id VARCHAR PRIMARY KEY,
        tenant_id VARCHAR NOT NULL,
        name VARCHAR NOT NULL,
        slug VARCHAR NOT NULL,
        bio VARCHAR DEFAULT '',
        icon_url VARCHAR,
        created_at TIMESTAMP,
        {_PROVENANCE})
    """,
    f"""
    CREATE TABLE IF NOT EXISTS media_library (
        id VARCHAR PRIMARY KEY,
        tenant_id VARCHAR NOT NULL,
        url VARCHAR NOT NULL,
        thumbnail_url VARCHAR,
        source_url VARCHAR,
        file_name VARCHAR,
        content_type VARCHAR,
        width INTEGER,
        height INTEGER,
        size BIGINT,
        created_at TIMESTAMP,
        {_PROVENANCE})
    """,
]


def _new_id() -> str:
    return uuid.uuid4().hex


class DestinationStore:
    """
    Thin data-access layer over a DuckDB database.

    Use ``":memory:"`` as ``database_path`` for a throwaway store.  The
    store can be used as a context manager to close the connection.
    """

    def __init__(self, database_path: str = ":memory:", *, read_only: bool = False) -> None:
        self.database_path = database_path
        self.con = duckdb.connect(database=database_path, read_only=read_only)
        if not read_only:
            self.initialize_schema()

    def __enter__(self) -> "DestinationStore":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self.con.close()

    def initialize_schema(self) -> None:
        for statement in SCHEMA:
            self.con.execute(statement)

    @staticmethod
    def _table(mapping: Dict[str, str], kind: str) -> str:
        try:
            return mapping[kind]
        except KeyError:
            raise ValueError(f"Unknown collection kind: {kind!r}") from None

    def _fetch_dicts(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        cur = self.con.execute(sql, params or [])
        columns = [d[0] for d in cur.description]
        return [dict(zip(columns, row)) for row in cur.fetchall()]

    ###########################################################################
    # Tenants
    ###########################################################################

    def create_tenant(self, name: str, slug: Optional[str] = None, tenant_id: Optional[str] = None) -> str:
        tenant_id = tenant_id or _new_id()
        self.con.execute(
            "INSERT INTO tenants (id, name, slug, created_at) VALUES (?, ?, ?, ?)",
            [tenant_id, name, slug, utcnow()],
        )
        return tenant_id

    def get_tenant(self, tenant_id: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch_dicts("SELECT * FROM tenants WHERE id = ?", [tenant_id])
        return rows[0] if rows else None

    def list_tenants(self) -> List[Dict[str, Any]]:
        return self._fetch_dicts("SELECT * FROM tenants ORDER BY name")

    ###########################################################################
    # Articles and pages
    ###########################################################################

    def find_content_id(self, kind: str, slug: str, tenant_id: str) -> Optional[str]:
        table = self._table(CONTENT_TABLES, kind)
        row = self.con.execute(
            f"SELECT id FROM {table} WHERE slug = ? AND tenant_id = ? LIMIT 1",
            [slug, tenant_id],
        ).fetchone()
        return row[0] if row else None

    def insert_content(self, kind: str, record: DestinationContentRecord) -> str:
        table = self._table(CONTENT_TABLES, kind)
        row = record.to_row()
        if kind != "page":
            row.pop("parent_id", None)
            row.pop("sort_order", None)
        now = utcnow()
        row.update({"id": _new_id(), "created_at": now, "updated_at": now})
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)
        self.con.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            [row[c] for c in columns],
        )
        return row["id"]

    def get_content(self, kind: str, content_id: str) -> Optional[Dict[str, Any]]:
        table = self._table(CONTENT_TABLES, kind)
        rows = self._fetch_dicts(f"SELECT * FROM {table} WHERE id = ?", [content_id])
        if not rows:
            return None
        row = rows[0]
        for key in ("category_ids", "tag_ids"):
            row[key] = json.loads(row[key]) if row.get(key) else []
        return row

    def update_page_parent(self, page_id: str, parent_id: Optional[str]) -> None:
        self.con.execute(
            "UPDATE pages SET parent_id = ?, updated_at = ? WHERE id = ?",
            [parent_id, utcnow(), page_id],
        )

    ###########################################################################
    # Categories, tags and writers
    ###########################################################################

    def find_reference(
        self,
        kind: str,
        tenant_id: str,
        *,
        name: Optional[str] = None,
        slug: Optional[str] = None,
    ) -> Optional[str]:
        table = self._table(REFERENCE_TABLES, kind)
        if name is not None:
            column, value = "name", name
        elif slug is not None:
            column, value = "slug", slug
        else:
            raise ValueError("find_reference needs a name or a slug")
        row = self.con.execute(
            f"SELECT id FROM {table} WHERE {column} = ? AND tenant_id = ? ORDER BY created_at LIMIT 1",
            [value, tenant_id],
        ).fetchone()
        return row[0] if row else None

    def create_reference(
        self,
        kind: str,
        tenant_id: str,
        *,
        name: str,
        slug: str,
        source_id: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        table = self._table(REFERENCE_TABLES, kind)
        now = utcnow()
        row: Dict[str, Any] = {
            "id": _new_id(),
            "tenant_id": tenant_id,
            "name": name,
            "slug": slug,
            "created_at": now,
            "wp_migrated": True,
            "wp_migrated_at": now,
            "wp_original_id": source_id,
        }
        row.update(extra or {})
        columns = list(row)
        self.con.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            [row[c] for c in columns],
        )
        return row["id"]

    ###########################################################################
    # Media library
    ###########################################################################

    def insert_media(self, asset: AssetRecord) -> str:
        media_id = _new_id()
        now = utcnow()
        self.con.execute(
            """
            INSERT INTO media_library (
                id, tenant_id, url, thumbnail_url, source_url, file_name, content_type,
                width, height, size, created_at, wp_migrated, wp_migrated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, TRUE, ?)
            """,
            [
                media_id, asset.tenant_id, asset.url, asset.thumbnail_url, asset.source_url,
                asset.file_name, asset.content_type, asset.width, asset.height, asset.size,
                now, now,
            ],
        )
        return media_id

    ###########################################################################
    # Audit and rollback
    ###########################################################################

    @staticmethod
    def _migrated_collection(collection: str) -> str:
        if collection not in MIGRATED_COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection!r}")
        return collection

    def count(self, collection: str, tenant_id: str, *, migrated_only: bool = False) -> int:
        table = self._migrated_collection(collection)
        sql = f"SELECT COUNT(*) FROM {table} WHERE tenant_id = ?"
        if migrated_only:
            sql += " AND wp_migrated"
        return self.con.execute(sql, [tenant_id]).fetchone()[0]

    def migrated_rows(self, collection: str, tenant_id: str) -> List[Dict[str, Any]]:
        table = self._migrated_collection(collection)
        return self._fetch_dicts(
            f"SELECT * FROM {table} WHERE tenant_id = ? AND wp_migrated ORDER BY wp_migrated_at",
            [tenant_id],
        )

    def migrated_frame(self, collection: str, tenant_id: str):
        """Provenance-flagged rows of ``collection`` as a pandas DataFrame."""
        table = self._migrated_collection(collection)
        return self.con.execute(
            f"SELECT * FROM {table} WHERE tenant_id = ? AND wp_migrated ORDER BY wp_migrated_at",
            [tenant_id],
        ).df()

    def delete_migrated(self, collection: str, tenant_id: str) -> int:
        """Delete the rows the migrator created; returns how many were removed."""
        table = self._migrated_collection(collection)
        count = self.count(collection, tenant_id, migrated_only=True)
        if count:
            self.con.execute(f"DELETE FROM {table} WHERE tenant_id = ? AND wp_migrated", [tenant_id])
        return count
