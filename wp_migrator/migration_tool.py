"""
High-level orchestration of the WordPress → content store migration.

This module defines a :class:`ContentMigrationTool` class that ties
together the extractor, reference resolver, asset pipeline, content
rewriter and destination store into a complete pipeline.  A run migrates
the posts of a WordPress site (and optionally its static pages) into one
tenant of the destination store, then links migrated pages to their
parents, writes log files, a summary report and a redirect CSV.

Configuration is supplied via a JSON file path or directly as a
dictionary.  The ``wordpress`` section must include ``base_url``.
Destination, storage, asset and run settings live under ``destination``,
``storage``, ``assets`` and ``migration``; every missing key gets a default,
secrets default to environment variables.

Per content item the pipeline is linear with early exit: idempotency check,
reference resolution, body cleanup and rewrite, featured image, insert.  A
failing item is counted and logged; the run continues with the next one.
Re-running the tool skips everything that already exists, so re-invocation
is the retry mechanism.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Set

import duckdb
import requests

from .extractors.wordpress_extractor import WordPressExtractor
from .models.destination import DestinationContentRecord, utcnow
from .models.result import MigrationResult, RunState
from .models.source import AuthorRecord, SourceContentItem, TaxonomyRecord
from .migrators.asset_pipeline import AssetPipeline, AssetSettings
from .migrators.asset_storage import AssetStorage, LocalAssetStorage
from .migrators.destination_store import DestinationStore
from .migrators.references import ReferenceResolver
from .parsers.content_rewriter import ContentRewriter, build_page_slug_index, find_asset_urls
from .parsers.html_cleaner import clean_wordpress_html, html_to_text
from .utils.errors import DEFAULT_REPORT_DIR, log_message, report_error, report_ok, write_summary
from .utils.pre_flight_checks import run_pre_flight_checks
from .utils.redirects import generate_redirects_csv
from .utils.slugs import load_slug_table, sanitize_slug

_FROM_CONFIG = object()


def _default_config(config: Dict[str, Any]) -> Dict[str, Any]:
    # Ensure essential keys exist to prevent KeyErrors
    config.setdefault("wordpress", {})
    config["wordpress"].setdefault("base_url", os.getenv("WP_BASE_URL", ""))
    config["wordpress"].setdefault("username", os.getenv("WP_USERNAME", ""))
    config["wordpress"].setdefault("application_password", os.getenv("WP_APPLICATION_PASSWORD", ""))
    config["wordpress"].setdefault("token", os.getenv("WP_TOKEN", ""))
    config["wordpress"].setdefault("page_size", 100)
    config["wordpress"].setdefault("max_pages", 50)
    config["wordpress"].setdefault("timeout", 30)

    config.setdefault("destination", {})
    config["destination"].setdefault("database_path", os.getenv("MIGRATION_DB_PATH", "data/migration.duckdb"))

    config.setdefault("storage", {})
    config["storage"].setdefault("root_dir", os.getenv("ASSET_STORAGE_ROOT", "data/storage"))
    config["storage"].setdefault("public_base_url", os.getenv("ASSET_PUBLIC_BASE_URL", "http://localhost:8000/storage"))

    config.setdefault("assets", {})
    config["assets"].setdefault("max_width", 1200)
    config["assets"].setdefault("primary_quality", 85)
    config["assets"].setdefault("thumbnail_size", [300, 300])
    config["assets"].setdefault("thumbnail_quality", 80)
    config["assets"].setdefault("max_redirects", 5)
    config["assets"].setdefault("download_delay", 0.1)
    config["assets"].setdefault("timeout", 30)

    config.setdefault("migration", {})
    config["migration"].setdefault("dry_run", False)
    config["migration"].setdefault("limit", None)
    config["migration"].setdefault("include_pages", False)
    config["migration"].setdefault("include_non_public", False)
    config["migration"].setdefault("clean_html", False)
    config["migration"].setdefault("slug_table_path", None)
    config["migration"].setdefault("media_batch_size", 10)
    config["migration"].setdefault("new_site_url", "")
    config["migration"].setdefault("report_dir", DEFAULT_REPORT_DIR)
    return config


def load_config(config_file: Optional[str] = None, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Read ``config_file`` when it exists, else use ``config``; fill in defaults."""
    if config_file and os.path.exists(config_file):
        with open(config_file, "r", encoding="utf-8") as f:
            config = json.load(f)
    elif config is None:
        # Default configuration
        config = {}
    return _default_config(config)


@dataclass
class MigrationContext:
    """Everything one run needs, built at run start and passed explicitly."""

    tenant_id: str
    dry_run: bool
    result: MigrationResult
    resolver: ReferenceResolver
    assets: AssetPipeline
    page_slugs: FrozenSet[str] = frozenset()
    categories: Dict[int, TaxonomyRecord] = field(default_factory=dict)
    tags: Dict[int, TaxonomyRecord] = field(default_factory=dict)
    users: Dict[int, AuthorRecord] = field(default_factory=dict)
    pages: List[SourceContentItem] = field(default_factory=list)
    media_urls: Dict[int, str] = field(default_factory=dict)
    # slugs written (or, in dry-run, that would have been written) per kind
    claimed: Dict[str, Set[str]] = field(default_factory=lambda: {"article": set(), "page": set()})
    # destination IDs of pages created in this run, keyed by slug
    page_ids: Dict[str, str] = field(default_factory=dict)
    migrated: List[Dict[str, str]] = field(default_factory=list)


class ContentMigrationTool:
    """
    Encapsulates all state and behavior required to migrate a WordPress
    site into one tenant of the destination store.  This class is
    responsible for reading configuration, opening the store and storage,
    and running the migration.  Detailed success and failure information is
    recorded using the :mod:`wp_migrator.utils.errors` module.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        *,
        config_file: Optional[str] = None,
        store: Optional[DestinationStore] = None,
        storage: Optional[AssetStorage] = None,
        session: Optional[requests.Session] = None,
        asset_session: Optional[requests.Session] = None,
        report_dir: Any = _FROM_CONFIG,
    ) -> None:
        self.config = load_config(config_file, config)

        # None disables report files
        self.report_dir = self.config["migration"]["report_dir"] if report_dir is _FROM_CONFIG else report_dir

        if store is None:
            db_path = self.config["destination"]["database_path"]
            if db_path != ":memory:":
                os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
            store = DestinationStore(db_path)
        self.store = store
        self.storage = storage or LocalAssetStorage(
            self.config["storage"]["root_dir"], self.config["storage"]["public_base_url"]
        )
        self.session = session
        self.asset_session = asset_session or session
        self.slug_table = load_slug_table(self.config["migration"]["slug_table_path"])
        self.rewriter = ContentRewriter(self.config["wordpress"]["base_url"])

    def close(self) -> None:
        self.store.close()

    def log_message(self, message: str, level: str = "INFO") -> None:
        log_message(message, level, report_dir=self.report_dir)

    ###########################################################################
    # Construction of run collaborators
    ###########################################################################

    def build_extractor(self) -> WordPressExtractor:
        wp = self.config["wordpress"]
        return WordPressExtractor(
            wp["base_url"],
            username=wp["username"] or None,
            application_password=wp["application_password"] or None,
            token=wp["token"] or None,
            page_size=int(wp["page_size"]),
            max_pages=int(wp["max_pages"]),
            timeout=float(wp["timeout"]),
            session=self.session,
            log=self.log_message,
        )

    def build_asset_pipeline(self, dry_run: bool) -> AssetPipeline:
        return AssetPipeline(
            self.storage,
            self.store,
            settings=AssetSettings.from_config(self.config["assets"]),
            dry_run=dry_run,
            session=self.asset_session,
            log=self.log_message,
        )

    ###########################################################################
    # Run
    ###########################################################################

    def run(
        self,
        tenant_id: str,
        *,
        dry_run: Optional[bool] = None,
        limit: Optional[int] = None,
        include_pages: Optional[bool] = None,
    ) -> MigrationResult:
        """
        Migrate the configured WordPress site into ``tenant_id``.

        Arguments left as ``None`` fall back to the ``migration`` section of
        the configuration.

        :param dry_run: Read and transform everything but write nothing;
            placeholders stand in for destination IDs and asset URLs.
        :param limit: Maximum number of items read per content type.
        :param include_pages: Also migrate static pages and their hierarchy.
        :return: The run result, also written as ``summary.json``.
        :raises PreFlightCheckError: before any work when setup is invalid.
        """
        mig = self.config["migration"]
        dry_run = mig["dry_run"] if dry_run is None else dry_run
        limit = mig["limit"] if limit is None else limit
        include_pages = mig["include_pages"] if include_pages is None else include_pages

        extractor = self.build_extractor()
        run_pre_flight_checks(self.config, self.store, tenant_id, session=extractor.session, log=self.log_message)

        assets = self.build_asset_pipeline(dry_run)
        resolver = ReferenceResolver(
            self.store,
            dry_run=dry_run,
            slug_table=self.slug_table,
            log=self.log_message,
            avatar_materializer=lambda url: assets.new_context(tenant_id).materialize(url),
        )
        result = MigrationResult(tenant_id=tenant_id, dry_run=dry_run)
        ctx = MigrationContext(tenant_id=tenant_id, dry_run=dry_run, result=result, resolver=resolver, assets=assets)

        self.log_message(
            f"Starting migration into tenant {tenant_id}"
            + (" (DRY RUN)" if dry_run else "")
            + (f", limit {limit}" if limit is not None else "")
        )
        try:
            result.state = RunState.FETCHING_REFERENCE_DATA
            posts = self.fetch_reference_data(ctx, extractor, limit, include_pages)

            result.state = RunState.MIGRATING_CONTENT
            self.log_message(f"Migrating {len(posts)} articles...")
            self.migrate_items(ctx, posts, "article")
            if include_pages:
                pages = ctx.pages[:limit] if limit is not None else ctx.pages
                self.log_message(f"Migrating {len(pages)} pages...")
                self.migrate_items(ctx, pages, "page")

                result.state = RunState.RESOLVING_PAGE_HIERARCHY
                self.resolve_page_hierarchy(ctx)

            result.state = RunState.COMPLETED
        except Exception as e:
            result.state = RunState.FAILED
            self.log_message(f"Migration failed: {e}", "ERROR")
            raise
        finally:
            self.finish(ctx)
        return result

    def fetch_reference_data(
        self,
        ctx: MigrationContext,
        extractor: WordPressExtractor,
        limit: Optional[int],
        include_pages: bool,
    ) -> List[SourceContentItem]:
        """Load lookup tables, the page-slug index and the posts to migrate."""
        self.log_message("Fetching categories, tags and users...")
        ctx.categories = {c.id: c for c in extractor.fetch_categories()}
        ctx.tags = {t.id: t for t in extractor.fetch_tags()}
        ctx.users = {u.id: u for u in extractor.fetch_users()}
        self.log_message(
            f"Found {len(ctx.categories)} categories, {len(ctx.tags)} tags, {len(ctx.users)} users"
        )

        # Pages are always read: their slugs drive link rewriting in posts too.
        ctx.pages = extractor.fetch_pages()
        ctx.page_slugs = build_page_slug_index(p.slug for p in ctx.pages)
        self.log_message(f"Found {len(ctx.pages)} pages")

        posts = extractor.fetch_posts(limit, self.config["migration"]["include_non_public"])
        self.log_message(f"Found {len(posts)} posts")

        items = list(posts)
        if include_pages:
            items.extend(ctx.pages[:limit] if limit is not None else ctx.pages)
        self.log_message("Fetching featured images...")
        ctx.media_urls = extractor.fetch_media_urls(
            (i.featured_media for i in items), batch_size=int(self.config["migration"]["media_batch_size"])
        )
        self.log_message(f"Found {len(ctx.media_urls)} featured images")
        return posts

    def migrate_items(self, ctx: MigrationContext, items: List[SourceContentItem], kind: str) -> None:
        stats = ctx.result.stats_for(kind)
        for index, item in enumerate(items, 1):
            self.log_message(f"[{index}/{len(items)}] {kind} '{item.slug}' ({item.id})")
            try:
                self.migrate_item(ctx, item, kind)
            except Exception as e:
                stats.errors += 1
                entry = report_error("ITEM_FAILED", self._ident(item, kind), e, report_dir=self.report_dir)
                ctx.result.log_item(kind, "error", entry)

    ###########################################################################
    # Per item
    ###########################################################################

    @staticmethod
    def _ident(item: SourceContentItem, kind: str) -> Dict[str, Any]:
        return {"kind": kind, "source_id": item.id, "slug": item.slug, "title": html_to_text(item.title)}

    def _destination_slug(self, item: SourceContentItem) -> str:
        if item.slug:
            return item.slug
        # Drafts may come without a slug.
        return sanitize_slug("", html_to_text(item.title) or str(item.id), self.slug_table)

    def migrate_item(self, ctx: MigrationContext, item: SourceContentItem, kind: str) -> Optional[str]:
        """
        Migrate one post or page.  Returns the destination ID, a placeholder
        in dry-run, or ``None`` when the item was skipped or failed.
        """
        result = ctx.result
        stats = result.stats_for(kind)
        slug = self._destination_slug(item)
        ident = {**self._ident(item, kind), "slug": slug}

        # 1. idempotency
        if slug in ctx.claimed[kind]:
            stats.skipped += 1
            result.log_item(kind, "skipped", {**ident, "code": "DUPLICATE_SLUG"})
            self.log_message(f"Skipped (duplicate slug in this run): {slug}")
            return None
        if self.store.find_content_id(kind, slug, ctx.tenant_id):
            stats.skipped += 1
            result.log_item(kind, "skipped", {**ident, "code": "ALREADY_MIGRATED"})
            self.log_message(f"Skipped (already exists): {slug}")
            return None

        # 2. references
        category_ids = self._resolve_taxonomies(ctx, "category", item.categories, ctx.categories, ident)
        tag_ids = self._resolve_taxonomies(ctx, "tag", item.tags, ctx.tags, ident)
        writer_id, writer_name = self._resolve_writer(ctx, item.author, ident)

        # 3. body
        item_assets = ctx.assets.new_context(ctx.tenant_id)
        body = clean_wordpress_html(item.content) if self.config["migration"]["clean_html"] else item.content
        rewrite = self.rewriter.rewrite(body, item_assets, ctx.page_slugs)
        for url in rewrite.unresolved_assets:
            report_error("ASSET_UNAVAILABLE", {**ident, "url": url}, report_dir=self.report_dir)
        for flagged in rewrite.review:
            self.log_message(f"Link needs review in {kind} '{slug}': {flagged['url']} -> {flagged['rewritten_to']}", "WARNING")
            result.flag_for_review("LINK_REVIEW", kind=kind, slug=slug, **flagged)
        result.links_rewritten += rewrite.links_rewritten

        # 4. featured image
        featured_source = ctx.media_urls.get(item.featured_media) if item.featured_media else None
        if not featured_source:
            inline = find_asset_urls(item.content, self.rewriter.source_base_url)
            featured_source = inline[0] if inline else None
        featured_image = None
        if featured_source:
            featured_image = item_assets.materialize(featured_source)
            if featured_image is None:
                report_error("ASSET_UNAVAILABLE", {**ident, "url": featured_source}, report_dir=self.report_dir)
                featured_image = featured_source
        result.assets_uploaded += item_assets.materialized

        # 5. persist
        try:
            record = DestinationContentRecord(
                tenant_id=ctx.tenant_id,
                slug=slug,
                title=html_to_text(item.title),
                content=rewrite.html,
                excerpt=html_to_text(item.excerpt),
                category_ids=category_ids,
                tag_ids=tag_ids,
                writer_id=writer_id,
                writer_name=writer_name,
                featured_image=featured_image,
                is_published=item.is_published,
                published_at=item.date,
                meta_title=item.meta_title,
                meta_description=item.meta_description,
                sort_order=item.menu_order if kind == "page" else 0,
                wp_original_id=item.id,
            )
            if ctx.dry_run:
                destination_id = f"[{kind.upper()}:{slug}]"
                self.log_message(f"Dry-run: would create {kind} '{slug}'")
            else:
                destination_id = self.store.insert_content(kind, record)
        except (duckdb.Error, ValueError) as e:
            stats.errors += 1
            entry = report_error("PERSIST_FAILED", ident, e, report_dir=self.report_dir)
            result.log_item(kind, "error", entry)
            return None

        ctx.claimed[kind].add(slug)
        stats.migrated += 1
        if kind == "page":
            ctx.page_ids[slug] = destination_id
        ctx.migrated.append({"kind": kind, "slug": slug, "permalink": item.link or ""})
        report_ok(
            "PAGE_CREATED" if kind == "page" else "ARTICLE_CREATED",
            ident,
            {"id": destination_id, "assets": len(rewrite.asset_map), "links_rewritten": rewrite.links_rewritten},
            report_dir=self.report_dir,
        )
        return destination_id

    def _resolve_taxonomies(
        self,
        ctx: MigrationContext,
        kind: str,
        source_ids: List[int],
        lookup: Dict[int, TaxonomyRecord],
        ident: Dict[str, Any],
    ) -> List[str]:
        resolved: List[str] = []
        for source_id in source_ids:
            term = lookup.get(source_id)
            if term is None:
                report_error(
                    "REFERENCE_UNRESOLVED", {**ident, "reference": kind, "reference_id": source_id},
                    report_dir=self.report_dir,
                )
                continue
            try:
                resolved.append(
                    ctx.resolver.resolve_or_create(kind, term.id, html_to_text(term.name), term.slug, ctx.tenant_id)
                )
            except (duckdb.Error, ValueError) as e:
                report_error(
                    "REFERENCE_UNRESOLVED", {**ident, "reference": kind, "reference_id": source_id}, e,
                    report_dir=self.report_dir,
                )
        return resolved

    def _resolve_writer(self, ctx: MigrationContext, author_id: Optional[int], ident: Dict[str, Any]):
        if not author_id:
            return None, None
        author = ctx.users.get(author_id)
        if author is None:
            report_error(
                "REFERENCE_UNRESOLVED", {**ident, "reference": "writer", "reference_id": author_id},
                report_dir=self.report_dir,
            )
            return None, None
        name = html_to_text(author.name)
        try:
            writer_id = ctx.resolver.resolve_or_create(
                "writer", author.id, name, author.slug, ctx.tenant_id,
                bio=author.bio, avatar_url=author.avatar_url,
            )
        except (duckdb.Error, ValueError) as e:
            report_error(
                "REFERENCE_UNRESOLVED", {**ident, "reference": "writer", "reference_id": author_id}, e,
                report_dir=self.report_dir,
            )
            return None, None
        return writer_id, name

    ###########################################################################
    # Page hierarchy
    ###########################################################################

    def resolve_page_hierarchy(self, ctx: MigrationContext) -> None:
        """
        Point every migrated page at its parent page.

        Covers pages created by earlier runs as well, so a child whose parent
        only made it into the store now gets linked on re-run.  Children that
        already point at the right parent are left alone.
        """
        by_source_id = {p.id: p for p in ctx.pages}
        children = [p for p in ctx.pages if p.parent]
        self.log_message(f"Resolving parents for {len(children)} pages...")
        for page in children:
            slug = self._destination_slug(page)
            child_id = ctx.page_ids.get(slug) or self.store.find_content_id("page", slug, ctx.tenant_id)
            if child_id is None:
                # not migrated (failed or outside the limit)
                continue
            row = self.store.get_content("page", child_id)
            current_parent = row["parent_id"] if row else None

            ident = {**self._ident(page, "page"), "slug": slug, "parent_source_id": page.parent}
            parent = by_source_id.get(page.parent)
            parent_id = None
            if parent is not None:
                parent_slug = self._destination_slug(parent)
                parent_id = ctx.page_ids.get(parent_slug) or self.store.find_content_id(
                    "page", parent_slug, ctx.tenant_id
                )
            if parent_id is None:
                if current_parent is None:
                    report_error("PARENT_UNRESOLVED", ident, report_dir=self.report_dir)
                    ctx.result.log_item("page", "parent_unresolved", ident)
                continue
            if parent_id == current_parent:
                continue
            if ctx.dry_run:
                self.log_message(f"Dry-run: would set parent of '{slug}' to {parent_id}")
            else:
                try:
                    self.store.update_page_parent(child_id, parent_id)
                except duckdb.Error as e:
                    report_error("PARENT_UNRESOLVED", ident, e, report_dir=self.report_dir)
                    ctx.result.log_item("page", "parent_unresolved", ident)
                    continue
            ctx.result.hierarchy_links += 1
            report_ok("PARENT_LINKED", ident, {"parent_id": parent_id}, report_dir=self.report_dir)

    ###########################################################################
    # Reporting
    ###########################################################################

    def finish(self, ctx: MigrationContext) -> None:
        result = ctx.result
        result.references_created = ctx.resolver.created
        result.review.extend(ctx.resolver.review)
        result.completed_at = result.completed_at or utcnow()

        summary = result.to_dict()
        path = write_summary(summary, report_dir=self.report_dir)
        if path:
            self.log_message(f"Summary written to {path}")
        if self.report_dir and ctx.migrated:
            csv_path = generate_redirects_csv(
                ctx.migrated,
                old_domain=self.config["wordpress"]["base_url"],
                new_base=self.config["migration"]["new_site_url"],
                out_path=os.path.join(self.report_dir, "redirect_map.csv"),
            )
            self.log_message(f"Redirect map written to {csv_path}")
        for line in result.summary_lines():
            self.log_message(line)
