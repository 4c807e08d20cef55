"""
Rewriting of embedded asset URLs and internal links inside an HTML body.

The rewrite runs in two passes, assets first:

1. every source upload URL (``<source>/wp-content/uploads/...<image ext>``)
   is materialized through the item's asset context and replaced by its
   durable URL; URLs that cannot be materialized are left untouched;
2. absolute links to the source site are rewritten to destination paths
   by an ordered table of :class:`LinkRewriteRule` objects.

The link table is plain data, so each rule can be tested on its own::

    rules = build_link_rules("https://src.example", {"about"})
    html, count, flagged = rules[0].apply(html)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

ASSET_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp", "svg")

# Path segments that belong to the source platform itself, never to a page.
RESERVED_SEGMENTS = frozenset({
    "wp-content",
    "wp-admin",
    "wp-includes",
    "wp-json",
    "wp-login.php",
    "feed",
    "category",
    "tag",
    "author",
    "page",
    "comments",
    "xmlrpc.php",
})

# Archive endpoints that hang below a term, never a term themselves.
FEED_SEGMENTS = frozenset({"feed", "amp", "embed"})

_SEGMENT = r"[^/\"'<>\s?#]+"
_END = r"(?=[\"'<>\s?#]|$)"
# Archive pagination: /category/travel/page/2/
_PAGED = r"(?:/page/\d+)?"


def _host_pattern(source_base_url: str) -> str:
    """Scheme-agnostic pattern of the site root, including a sub-path install."""
    parsed = urlparse(source_base_url)
    if not parsed.netloc:
        return r"https?://" + re.escape(source_base_url.strip("/"))
    return r"https?://" + re.escape(parsed.netloc) + re.escape(parsed.path.rstrip("/"))


@dataclass(frozen=True)
class LinkRewriteRule:
    """
    One named link rewrite.

    ``replacement`` is a :meth:`re.Match.expand` template.  Matches whose
    ``slug`` group is in ``exclude`` are left unchanged.  Rewrites made by a
    rule with ``review`` set are reported back for operator review.
    """

    name: str
    pattern: re.Pattern
    replacement: str
    exclude: FrozenSet[str] = frozenset()
    review: bool = False

    def apply(self, html: str) -> Tuple[str, int, List[Dict[str, str]]]:
        flagged: List[Dict[str, str]] = []
        count = 0

        def _sub(match: re.Match) -> str:
            nonlocal count
            slug = match.groupdict().get("slug")
            if slug is not None and slug.lower() in self.exclude:
                return match.group(0)
            new = match.expand(self.replacement)
            count += 1
            if self.review:
                flagged.append({"rule": self.name, "url": match.group(0), "rewritten_to": new})
            return new

        return self.pattern.sub(_sub, html), count, flagged


def build_link_rules(source_base_url: str, page_slugs: Iterable[str] = ()) -> List[LinkRewriteRule]:
    """The ordered link table for ``source_base_url``.  First matching rule wins."""
    host = _host_pattern(source_base_url)
    rules = [
        LinkRewriteRule(
            "article",
            re.compile(rf"{host}/\d{{4}}/\d{{2}}/\d{{2}}/(?P<slug>{_SEGMENT})/?{_END}", re.IGNORECASE),
            r"/articles/\g<slug>",
        ),
        LinkRewriteRule(
            "category",
            re.compile(
                rf"{host}/category/(?:(?!(?:feed|page)/){_SEGMENT}/)*?(?P<slug>{_SEGMENT}){_PAGED}/?{_END}",
                re.IGNORECASE,
            ),
            r"/categories/\g<slug>",
            exclude=FEED_SEGMENTS,
        ),
        LinkRewriteRule(
            "tag",
            re.compile(rf"{host}/tag/(?P<slug>{_SEGMENT}){_PAGED}/?{_END}", re.IGNORECASE),
            r"/tags/\g<slug>",
        ),
        LinkRewriteRule(
            "author",
            re.compile(rf"{host}/author/(?P<slug>{_SEGMENT}){_PAGED}/?{_END}", re.IGNORECASE),
            r"/writers/\g<slug>",
        ),
    ]
    # Longest first so that "about-us" is not cut short by "about".
    for slug in sorted(set(page_slugs), key=lambda s: (-len(s), s)):
        if not slug or "/" in slug:
            continue
        rules.append(LinkRewriteRule(
            f"page:{slug}",
            re.compile(rf"{host}/{re.escape(slug)}/?{_END}", re.IGNORECASE),
            "/" + slug.replace("\\", "\\\\"),
        ))
    rules.append(LinkRewriteRule(
        "catch-all",
        re.compile(rf"{host}/(?P<slug>{_SEGMENT})/?{_END}", re.IGNORECASE),
        r"/\g<slug>",
        exclude=RESERVED_SEGMENTS,
        review=True,
    ))
    rules.append(LinkRewriteRule("root", re.compile(rf"{host}/?{_END}", re.IGNORECASE), "/"))
    return rules


def build_page_slug_index(slugs: Iterable[str]) -> FrozenSet[str]:
    """Raw and URL-decoded forms of every page slug."""
    index = set()
    for slug in slugs:
        if slug:
            index.add(slug)
            index.add(unquote(slug))
    return frozenset(index)


def find_asset_urls(html: str, source_base_url: str) -> List[str]:
    """Source upload URLs in ``html``, deduplicated in order of first appearance."""
    pattern = re.compile(
        _host_pattern(source_base_url)
        + r"/wp-content/uploads/[^\s\"'<>]+\.(?:" + "|".join(ASSET_EXTENSIONS) + r")",
        re.IGNORECASE,
    )
    return list(dict.fromkeys(pattern.findall(html or "")))


@dataclass
class RewriteResult:
    html: str
    asset_map: Dict[str, str] = field(default_factory=dict)
    unresolved_assets: List[str] = field(default_factory=list)
    links_rewritten: int = 0
    review: List[Dict[str, str]] = field(default_factory=list)


class ContentRewriter:
    def __init__(self, source_base_url: str) -> None:
        self.source_base_url = source_base_url.rstrip("/")
        self._rules_key: Optional[FrozenSet[str]] = None
        self._rules: List[LinkRewriteRule] = []

    def rules_for(self, page_slugs: Iterable[str]) -> List[LinkRewriteRule]:
        key = frozenset(page_slugs)
        if key != self._rules_key:
            self._rules = build_link_rules(self.source_base_url, key)
            self._rules_key = key
        return self._rules

    def rewrite_assets(self, html: str, assets: Any) -> RewriteResult:
        result = RewriteResult(html=html or "")
        if assets is None:
            return result
        for url in find_asset_urls(result.html, self.source_base_url):
            new_url = assets.materialize(url)
            if new_url:
                result.asset_map[url] = new_url
            else:
                result.unresolved_assets.append(url)
        for old, new in result.asset_map.items():
            result.html = result.html.replace(old, new)
        return result

    def rewrite_links(self, html: str, page_slugs: Iterable[str] = ()) -> Tuple[str, int, List[Dict[str, str]]]:
        total = 0
        review: List[Dict[str, str]] = []
        for rule in self.rules_for(page_slugs):
            html, count, flagged = rule.apply(html)
            total += count
            review.extend(flagged)
        return html, total, review

    def rewrite(self, html: str, assets: Any, page_slugs: Iterable[str] = ()) -> RewriteResult:
        """
        Rewrite ``html`` for the destination.

        :param assets: Per-item asset context exposing ``materialize(url)``,
            or ``None`` to leave asset URLs alone.
        :param page_slugs: Page-slug index used by the ``page:<slug>`` rules.
        """
        result = self.rewrite_assets(html, assets)
        result.html, result.links_rewritten, result.review = self.rewrite_links(result.html, page_slugs)
        return result
