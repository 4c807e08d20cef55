"""
Get-or-create of categories, tags and writers in the destination store.

Source taxonomies and authors are identified by numeric IDs that mean
nothing to the destination.  :class:`ReferenceResolver` maps each
``(kind, source_id)`` to a destination ID, reusing existing destination
records before creating new ones:

1. run cache keyed by ``(kind, tenant, source_id)``;
2. destination record with the same display name;
3. destination record with the same sanitized slug;
4. a new record carrying the provenance fields.

Matching by name first means two source taxonomies that share a display
name end up as one destination record.  Such merges are logged and kept in
:attr:`ReferenceResolver.review` so an operator can look at them.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..models.destination import ReferenceMapping
from ..utils.errors import console_log
from ..utils.slugs import sanitize_slug
from .destination_store import REFERENCE_TABLES, DestinationStore

LogFn = Callable[..., None]
Materializer = Callable[[str], Optional[str]]


class ReferenceResolver:
    def __init__(
        self,
        store: DestinationStore,
        *,
        dry_run: bool = False,
        slug_table: Optional[Mapping[str, str]] = None,
        log: LogFn = console_log,
        avatar_materializer: Optional[Materializer] = None,
    ) -> None:
        self.store = store
        self.dry_run = dry_run
        self.slug_table = slug_table
        self.log = log
        self.avatar_materializer = avatar_materializer
        self.cache: Dict[Tuple[str, str, int], ReferenceMapping] = {}
        self.created = 0
        self.review: List[Dict[str, object]] = []
        # (kind, tenant, name) -> (first source id, its source slug)
        self._first_by_name: Dict[Tuple[str, str, str], Tuple[int, str]] = {}
        # dry-run stand-ins for records a real run would have created
        self._pending_by_name: Dict[Tuple[str, str, str], str] = {}
        self._pending_by_slug: Dict[Tuple[str, str, str], str] = {}

    @staticmethod
    def placeholder(kind: str, name: str) -> str:
        return f"[{kind.upper()}:{name}]"

    def resolve_or_create(
        self,
        kind: str,
        source_id: int,
        name: str,
        source_slug: str,
        tenant_id: str,
        *,
        bio: str = "",
        avatar_url: Optional[str] = None,
    ) -> str:
        """
        Destination ID for the source record ``(kind, source_id)``.

        :param kind: ``category``, ``tag`` or ``writer``.
        :param name: Display name of the source record.
        :param source_slug: Slug as delivered by the source, possibly
            percent-encoded.
        :param bio: Writer biography; ignored for taxonomies.
        :param avatar_url: Source avatar of a writer; ignored for taxonomies.
        :raises ValueError: for an unknown ``kind``.
        :raises duckdb.Error: when the destination store fails.
        """
        if kind not in REFERENCE_TABLES:
            raise ValueError(f"Unknown reference kind: {kind!r}")

        key = (kind, tenant_id, source_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached.destination_id

        name = (name or "").strip() or source_slug or str(source_id)
        slug = sanitize_slug(source_slug, name, self.slug_table)
        self._check_merge(kind, tenant_id, source_id, name, source_slug)

        destination_id, resolved_by = self._lookup(kind, tenant_id, name, slug)
        if destination_id is None:
            destination_id = self._create(kind, tenant_id, source_id, name, slug, bio, avatar_url)
            resolved_by = "placeholder" if self.dry_run else "created"

        self.cache[key] = ReferenceMapping(kind, source_id, destination_id, resolved_by)
        return destination_id

    def _lookup(self, kind: str, tenant_id: str, name: str, slug: str) -> Tuple[Optional[str], str]:
        name_key = (kind, tenant_id, name)
        slug_key = (kind, tenant_id, slug)
        if self.dry_run and name_key in self._pending_by_name:
            return self._pending_by_name[name_key], "name"
        found = self.store.find_reference(kind, tenant_id, name=name)
        if found:
            return found, "name"
        if self.dry_run and slug_key in self._pending_by_slug:
            return self._pending_by_slug[slug_key], "slug"
        found = self.store.find_reference(kind, tenant_id, slug=slug)
        if found:
            return found, "slug"
        return None, ""

    def _create(
        self,
        kind: str,
        tenant_id: str,
        source_id: int,
        name: str,
        slug: str,
        bio: str,
        avatar_url: Optional[str],
    ) -> str:
        self.created += 1
        if self.dry_run:
            destination_id = self.placeholder(kind, name)
            self._pending_by_name[(kind, tenant_id, name)] = destination_id
            self._pending_by_slug[(kind, tenant_id, slug)] = destination_id
            self.log(f"Dry-run: would create {kind} '{name}' ({slug})")
            return destination_id

        extra: Dict[str, object] = {}
        if kind == "writer":
            icon = avatar_url
            if avatar_url and self.avatar_materializer is not None:
                icon = self.avatar_materializer(avatar_url) or avatar_url
            extra = {"bio": bio or "", "icon_url": icon}
        destination_id = self.store.create_reference(
            kind, tenant_id, name=name, slug=slug, source_id=source_id, extra=extra
        )
        self.log(f"Created {kind}: {name} ({slug})")
        return destination_id

    def _check_merge(self, kind: str, tenant_id: str, source_id: int, name: str, source_slug: str) -> None:
        name_key = (kind, tenant_id, name)
        first = self._first_by_name.get(name_key)
        if first is None:
            self._first_by_name[name_key] = (source_id, source_slug)
            return
        first_id, first_slug = first
        if first_id != source_id and first_slug != source_slug:
            self.log(
                f"{kind} '{name}': source {source_id} ({source_slug}) merged into "
                f"source {first_id} ({first_slug}) by name",
                "WARNING",
            )
            self.review.append({
                "reason": "REFERENCE_MERGED",
                "kind": kind,
                "name": name,
                "source_id": source_id,
                "source_slug": source_slug,
                "merged_into_source_id": first_id,
                "merged_into_slug": first_slug,
            })
