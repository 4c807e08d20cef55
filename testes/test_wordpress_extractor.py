import requests

from conftest import COVER_URL, SOURCE
from wp_migrator.extractors.wordpress_extractor import WordPressExtractor
from wp_migrator.models.source import ContentStatus


def _items(n):
    return [{"id": i, "slug": f"post-{i}", "title": {"rendered": f"Post {i}"}} for i in range(1, n + 1)]


def _extractor(wp, log, **kwargs):
    kwargs.setdefault("page_size", 2)
    return WordPressExtractor(SOURCE, session=wp, log=log, **kwargs)


def _list_calls(wp, collection):
    url = f"{SOURCE}/wp-json/wp/v2/{collection}"
    return wp.calls_to(url)


def test_reads_every_page_until_the_source_runs_out(wordpress, log_lines):
    wordpress.collections["posts"] = _items(5)
    items = _extractor(wordpress, log_lines).fetch_all_of_type("posts")
    assert [i["id"] for i in items] == [1, 2, 3, 4, 5]
    pages = [params["page"] for _, params in _list_calls(wordpress, "posts")]
    assert pages == [1, 2, 3, 4]
    assert all(params["per_page"] == 2 for _, params in _list_calls(wordpress, "posts"))
    # the out-of-range page is a normal end of data, not an error
    assert not [m for level, m in log_lines.lines if level == "ERROR"]


def test_limit_truncates_and_stops_paging(wordpress, log_lines):
    wordpress.collections["posts"] = _items(5)
    items = _extractor(wordpress, log_lines).fetch_all_of_type("posts", limit=3)
    assert [i["id"] for i in items] == [1, 2, 3]
    assert len(_list_calls(wordpress, "posts")) == 2


def test_page_ceiling_stops_with_a_warning(wordpress, log_lines):
    wordpress.collections["posts"] = _items(7)
    items = _extractor(wordpress, log_lines, max_pages=2).fetch_all_of_type("posts")
    assert len(items) == 4
    assert any(level == "WARNING" and "maximum page limit" in m for level, m in log_lines.lines)


def test_error_on_first_page_yields_empty_collection(wordpress, log_lines):
    wordpress.errors[f"{SOURCE}/wp-json/wp/v2/posts"] = requests.ConnectionError("refused")
    assert _extractor(wordpress, log_lines).fetch_all_of_type("posts") == []
    assert any(level == "ERROR" for level, _ in log_lines.lines)


def test_non_public_statuses_need_credentials(wordpress, log_lines):
    wordpress.collections["posts"] = _items(1)
    _extractor(wordpress, log_lines).fetch_all_of_type("posts", include_non_public=True)
    _, params = _list_calls(wordpress, "posts")[0]
    assert "status" not in params
    assert any(level == "WARNING" and "no credentials" in m for level, m in log_lines.lines)


def test_non_public_statuses_with_basic_auth(wordpress, log_lines):
    wordpress.collections["posts"] = _items(1)
    extractor = _extractor(wordpress, log_lines, username="editor", application_password="abcd efgh")
    extractor.fetch_all_of_type("posts", include_non_public=True)
    _, params = _list_calls(wordpress, "posts")[0]
    assert params["status"] == "publish,draft,private,pending"
    assert params["context"] == "edit"
    assert wordpress.auth == ("editor", "abcd efgh")


def test_bearer_token_is_sent_as_header(wordpress, log_lines):
    extractor = _extractor(wordpress, log_lines, token="secret")
    assert extractor.has_credentials
    assert wordpress.headers["Authorization"] == "Bearer secret"
    assert "User-Agent" in wordpress.headers


def test_fetch_single_returns_none_for_missing_items(wordpress, log_lines):
    wordpress.collections["media"] = [{"id": 50, "source_url": COVER_URL}]
    extractor = _extractor(wordpress, log_lines)
    assert extractor.fetch_single("media", 50)["source_url"] == COVER_URL
    assert extractor.fetch_single("media", 51) is None


def test_fetch_media_urls_resolves_unique_ids_in_batches(wordpress, log_lines):
    wordpress.collections["media"] = [
        {"id": i, "source_url": f"{SOURCE}/wp-content/uploads/{i}.jpg"} for i in range(1, 6)
    ]
    urls = _extractor(wordpress, log_lines).fetch_media_urls([1, 2, 2, None, 0, 3, 4, 5, 99], batch_size=2)
    assert urls == {i: f"{SOURCE}/wp-content/uploads/{i}.jpg" for i in range(1, 6)}
    assert len(wordpress.calls_to(f"{SOURCE}/wp-json/wp/v2/media/2")) == 1


def test_fetch_posts_normalizes_payloads(wordpress, log_lines):
    wordpress.collections["posts"] = [
        {
            "id": 7,
            "slug": "hello",
            "status": "future",
            "title": {"rendered": "Hello &amp; welcome"},
            "content": {"rendered": "<p>Body</p>", "protected": False},
            "excerpt": {"rendered": "<p>Short</p>"},
            "date": "2024-02-01T10:00:00",
            "author": 3,
            "featured_media": 0,
            "categories": [1, 2],
            "tags": [],
            "yoast_head_json": {"og_title": "SEO title", "og_description": "SEO desc"},
            "unknown_plugin_field": {"x": 1},
        },
        {"slug": "no-id"},
    ]
    posts = _extractor(wordpress, log_lines).fetch_posts()
    assert len(posts) == 1
    post = posts[0]
    assert post.type == "post"
    assert post.content == "<p>Body</p>"
    assert post.featured_media is None
    assert post.categories == [1, 2]
    assert post.status is ContentStatus.DRAFT
    assert not post.is_published
    assert post.meta_title == "SEO title"
    assert post.meta_description == "SEO desc"
    assert any("Dropping malformed" in m for _, m in log_lines.lines)


def test_fetch_pages_marks_pages(site, log_lines):
    pages = _extractor(site, log_lines, page_size=100).fetch_pages()
    assert [p.slug for p in pages] == ["about", "team"]
    assert all(p.is_page for p in pages)
    assert pages[1].parent == 100
    assert pages[0].parent is None


def test_fetch_users_picks_largest_avatar(site, log_lines):
    (user,) = _extractor(site, log_lines).fetch_users()
    assert user.avatar_url.endswith("alice-96.png")
    assert user.bio == "Writes about travel."
