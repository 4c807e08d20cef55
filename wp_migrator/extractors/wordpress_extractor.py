"""
Paginated reader for the WordPress REST API (``/wp-json/wp/v2``).

Every collection is read page by page with a fixed ``per_page`` until an
empty page, an item limit or a hard page ceiling is reached.  Read errors
never abort the run: the collection simply ends where the error occurred.
Raw JSON is validated into the records of :mod:`wp_migrator.models.source`
at this boundary so the rest of the pipeline never sees untyped payloads.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, TypeVar

import requests
from pydantic import ValidationError

from ..models.source import AuthorRecord, SourceContentItem, SourceRecord, TaxonomyRecord
from ..utils.errors import console_log

DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_PAGES = 50
NON_PUBLIC_STATUSES = "publish,draft,private,pending"
USER_AGENT = "wp-migrator/1.0 (+content migration)"

LogFn = Callable[..., None]
R = TypeVar("R", bound=SourceRecord)


class WordPressExtractor:
    """
    Reads posts, pages, taxonomies, users and media from a WordPress site.

    Credentials are optional.  With ``username`` and ``application_password``
    requests use HTTP basic auth; with ``token`` a bearer header is sent.
    Only authenticated readers may ask for non-public statuses.
    """

    def __init__(
        self,
        base_url: str,
        *,
        username: Optional[str] = None,
        application_password: Optional[str] = None,
        token: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        log: LogFn = console_log,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.page_size = max(1, page_size)
        self.max_pages = max(1, max_pages)
        self.timeout = timeout
        self.log = log
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)
        self.has_credentials = False
        if username and application_password:
            self.session.auth = (username, application_password)
            self.has_credentials = True
        elif token:
            self.session.headers["Authorization"] = f"Bearer {token}"
            self.has_credentials = True

    def endpoint(self, collection: str) -> str:
        return f"{self.base_url}/wp-json/wp/v2/{collection.strip('/')}"

    ###########################################################################
    # Raw access
    ###########################################################################

    def _fetch_page(self, collection: str, page: int, extra: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
        """Return one page of items, or ``None`` when the collection must stop."""
        url = self.endpoint(collection)
        params = {"per_page": self.page_size, "page": page, **extra}
        self.log(f"Fetching: {url} (page {page})", "DEBUG")
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            if page == 1:
                self.log(f"Error fetching {collection}: {e}", "ERROR")
            else:
                self.log(f"No more pages for {collection} after page {page - 1} ({e})", "INFO")
            return None
        if not isinstance(data, list):
            self.log(f"Unexpected payload for {collection} page {page}; stopping", "WARNING")
            return None
        return data

    def fetch_all_of_type(
        self,
        collection: str,
        limit: Optional[int] = None,
        include_non_public: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Read every item of ``collection``.

        :param collection: REST collection name (``posts``, ``pages``, ...).
        :param limit: Stop once this many items were read; the result is
            truncated to ``limit``.
        :param include_non_public: Also return drafts, private and pending
            items.  Ignored (with a warning) without credentials.
        :return: Raw JSON objects in API order.
        """
        if limit is not None and limit <= 0:
            return []
        extra: Dict[str, Any] = {}
        if include_non_public:
            if self.has_credentials:
                extra = {"status": NON_PUBLIC_STATUSES, "context": "edit"}
            else:
                self.log(
                    f"Non-public {collection} requested but no credentials are configured; "
                    "reading public items only.",
                    "WARNING",
                )

        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            data = self._fetch_page(collection, page, extra)
            if not data:
                break
            items.extend(data)
            self.log(f"Fetched {len(items)} items from {collection}")
            if limit is not None and len(items) >= limit:
                return items[:limit]
            page += 1
            if page > self.max_pages:
                self.log(f"Reached maximum page limit ({self.max_pages}) for {collection}", "WARNING")
                break
        return items

    def fetch_single(self, collection: str, item_id: int) -> Optional[Dict[str, Any]]:
        """Fetch one resource by ID; ``None`` when missing or unreachable."""
        url = f"{self.endpoint(collection)}/{item_id}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            self.log(f"Error fetching {collection}/{item_id}: {e}", "WARNING")
            return None
        if 400 <= resp.status_code < 500:
            return None
        try:
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            self.log(f"Error fetching {collection}/{item_id}: {e}", "WARNING")
            return None
        return data if isinstance(data, dict) else None

    def _media_url(self, media_id: int) -> Optional[str]:
        data = self.fetch_single("media", media_id)
        if not data:
            return None
        return data.get("source_url") or None

    def fetch_media_urls(self, media_ids: Iterable[Optional[int]], batch_size: int = 10) -> Dict[int, str]:
        """
        Resolve media IDs to their source URLs.

        Lookups run concurrently, ``batch_size`` at a time; a batch has to
        finish before the next one starts so the source API never sees more
        than ``batch_size`` requests in flight.
        """
        unique: List[int] = []
        for mid in media_ids:
            if mid and mid not in unique:
                unique.append(mid)
        width = max(1, batch_size)
        found: Dict[int, str] = {}
        with ThreadPoolExecutor(max_workers=width) as executor:
            for start in range(0, len(unique), width):
                batch = unique[start:start + width]
                for mid, url in zip(batch, executor.map(self._media_url, batch)):
                    if url:
                        found[mid] = url
        return found

    ###########################################################################
    # Typed access
    ###########################################################################

    def _validate(self, model: Type[R], collection: str, rows: List[Dict[str, Any]]) -> List[R]:
        records: List[R] = []
        for row in rows:
            try:
                records.append(model.model_validate(row))
            except ValidationError as e:
                self.log(f"Dropping malformed {collection} item {row.get('id')!r}: {e}", "WARNING")
        return records

    def fetch_posts(self, limit: Optional[int] = None, include_non_public: bool = False) -> List[SourceContentItem]:
        rows = self.fetch_all_of_type("posts", limit, include_non_public)
        return self._validate(SourceContentItem, "posts", [{"type": "post", **r} for r in rows])

    def fetch_pages(self, limit: Optional[int] = None) -> List[SourceContentItem]:
        rows = self.fetch_all_of_type("pages", limit)
        return self._validate(SourceContentItem, "pages", [{"type": "page", **r} for r in rows])

    def fetch_categories(self) -> List[TaxonomyRecord]:
        return self._validate(TaxonomyRecord, "categories", self.fetch_all_of_type("categories"))

    def fetch_tags(self) -> List[TaxonomyRecord]:
        return self._validate(TaxonomyRecord, "tags", self.fetch_all_of_type("tags"))

    def fetch_users(self) -> List[AuthorRecord]:
        return self._validate(AuthorRecord, "users", self.fetch_all_of_type("users"))
