import pytest

from conftest import SOURCE
from wp_migrator.parsers.content_rewriter import (
    RESERVED_SEGMENTS,
    ContentRewriter,
    build_link_rules,
    build_page_slug_index,
    find_asset_urls,
)


class FakeAssets:
    def __init__(self, available=None):
        self.available = available
        self.calls = []

    def materialize(self, url):
        self.calls.append(url)
        if self.available is not None and url not in self.available:
            return None
        return "https://cdn.test/" + url.rsplit("/", 1)[-1] + ".webp"


@pytest.fixture
def rewriter():
    return ContentRewriter(SOURCE)


def _rule(name, page_slugs=()):
    return next(r for r in build_link_rules(SOURCE, page_slugs) if r.name == name)


@pytest.mark.parametrize(
    "url, expected",
    [
        (f"{SOURCE}/2024/01/10/my-post/", "/articles/my-post"),
        ("http://src.example/2024/01/10/my-post", "/articles/my-post"),
        (f"{SOURCE}/category/travel/", "/categories/travel"),
        (f"{SOURCE}/category/life/travel/", "/categories/travel"),
        (f"{SOURCE}/tag/news/", "/tags/news"),
        (f"{SOURCE}/author/alice/", "/writers/alice"),
        (f"{SOURCE}/about/", "/about"),
        (f"{SOURCE}/", "/"),
        (SOURCE, "/"),
    ],
)
def test_link_rewrite_examples(rewriter, url, expected):
    html, count, review = rewriter.rewrite_links(f'<a href="{url}">x</a>', {"about"})
    assert html == f'<a href="{expected}">x</a>'
    assert count == 1
    assert review == []


def test_rules_are_ordered():
    names = [r.name for r in build_link_rules(SOURCE, {"about", "team"})]
    assert names[:4] == ["article", "category", "tag", "author"]
    assert set(names[4:6]) == {"page:about", "page:team"}
    assert names[-2:] == ["catch-all", "root"]


def test_catch_all_rewrites_are_flagged_for_review(rewriter):
    html, count, review = rewriter.rewrite_links(f'<a href="{SOURCE}/contact/">c</a>', {"about"})
    assert html == '<a href="/contact">c</a>'
    assert count == 1
    assert review == [{"rule": "catch-all", "url": f"{SOURCE}/contact/", "rewritten_to": "/contact"}]


@pytest.mark.parametrize("segment", sorted(RESERVED_SEGMENTS))
def test_catch_all_skips_reserved_segments(segment):
    text = f'<a href="{SOURCE}/{segment}/">x</a>'
    html, count, review = _rule("catch-all").apply(text)
    assert (html, count, review) == (text, 0, [])


def test_page_rule_prefers_longest_slug(rewriter):
    html, _, review = rewriter.rewrite_links(
        f'<a href="{SOURCE}/about-us/">a</a><a href="{SOURCE}/about">b</a>', {"about", "about-us"}
    )
    assert html == '<a href="/about-us">a</a><a href="/about">b</a>'
    assert review == []


def test_page_rule_is_exact_match():
    html, count, _ = _rule("page:about", {"about"}).apply(f'<a href="{SOURCE}/about/history/">x</a>')
    assert count == 0


def test_links_to_other_hosts_are_untouched(rewriter):
    text = '<a href="https://elsewhere.example/2024/01/10/my-post/">x</a>'
    assert rewriter.rewrite_links(text, set()) == (text, 0, [])


def test_find_asset_urls_deduplicates_in_order():
    a = f"{SOURCE}/wp-content/uploads/2024/01/a.JPG"
    b = f"{SOURCE}/wp-content/uploads/2024/01/b-300x200.webp"
    html = f'<img src="{a}"><img src="{b}" srcset="{a} 300w, {b} 600w"><a href="{SOURCE}/wp-content/uploads/doc.pdf">'
    assert find_asset_urls(html, SOURCE) == [a, b]


def test_asset_rewrite_replaces_every_occurrence(rewriter):
    a = f"{SOURCE}/wp-content/uploads/a.png"
    assets = FakeAssets()
    result = rewriter.rewrite(f'<img src="{a}"><a href="{a}">full</a>', assets, set())
    assert result.html == '<img src="https://cdn.test/a.png.webp"><a href="https://cdn.test/a.png.webp">full</a>'
    assert result.asset_map == {a: "https://cdn.test/a.png.webp"}
    assert assets.calls == [a]
    assert result.links_rewritten == 0


def test_unresolved_assets_stay_in_place(rewriter):
    ok = f"{SOURCE}/wp-content/uploads/ok.png"
    gone = f"{SOURCE}/wp-content/uploads/gone.png"
    result = rewriter.rewrite(f'<img src="{ok}"><img src="{gone}">', FakeAssets({ok}), set())
    assert gone in result.html
    assert ok not in result.html
    assert result.unresolved_assets == [gone]
    assert result.links_rewritten == 0


def test_rewrite_without_asset_context_only_touches_links(rewriter):
    a = f"{SOURCE}/wp-content/uploads/a.png"
    result = rewriter.rewrite(f'<img src="{a}"><a href="{SOURCE}/about/">x</a>', None, {"about"})
    assert a in result.html
    assert '<a href="/about">' in result.html
    assert result.links_rewritten == 1


def test_page_slug_index_contains_raw_and_decoded_forms():
    index = build_page_slug_index(["about", "%e4%bc%9a%e7%a4%be", ""])
    assert index == {"about", "%e4%bc%9a%e7%a4%be", "会社"}


@pytest.mark.parametrize(
    "url, expected",
    [
        (f"{SOURCE}/category/travel/page/2/", "/categories/travel"),
        (f"{SOURCE}/category/life/travel/page/3", "/categories/travel"),
        (f"{SOURCE}/tag/news/page/2/", "/tags/news"),
        (f"{SOURCE}/author/alice/page/4/", "/writers/alice"),
        (f"{SOURCE}/2024/01/10/my-post/?utm_source=x", "/articles/my-post?utm_source=x"),
        (f"{SOURCE}/2024/01/10/my-post#comments", "/articles/my-post#comments"),
    ],
)
def test_archive_pagination_and_query_strings(rewriter, url, expected):
    html, count, _ = rewriter.rewrite_links(f'<a href="{url}">x</a>', set())
    assert html == f'<a href="{expected}">x</a>'
    assert count == 1


@pytest.mark.parametrize(
    "path",
    [
        "2024/01/10/my-post/amp/",
        "tag/news/feed/",
        "author/alice/feed/",
        "category/travel/feed/",
        "category/travel/feed/atom/",
    ],
)
def test_urls_with_trailing_segments_are_left_alone(rewriter, path):
    text = f'<a href="{SOURCE}/{path}">x</a>'
    assert rewriter.rewrite_links(text, {"about"}) == (text, 0, [])


def test_sub_path_install_keeps_its_prefix():
    base = "https://x.example/blog"
    rewriter = ContentRewriter(base)
    html, count, review = rewriter.rewrite_links(
        f'<a href="{base}/2024/01/10/p/">a</a>'
        f'<a href="{base}/">b</a>'
        f'<a href="{base}/about/">c</a>'
        '<a href="https://x.example/shop/">d</a>',
        {"about"},
    )
    assert html == '<a href="/articles/p">a</a><a href="/">b</a><a href="/about">c</a><a href="https://x.example/shop/">d</a>'
    assert count == 3
    assert review == []
    assert find_asset_urls(f'<img src="{base}/wp-content/uploads/a.png">', base) == [f"{base}/wp-content/uploads/a.png"]
