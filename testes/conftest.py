import io
import os
import sys

import pytest
import requests
from PIL import Image

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wp_migrator.migrators.asset_storage import LocalAssetStorage
from wp_migrator.migrators.destination_store import DestinationStore

SOURCE = "https://src.example"
CDN = "https://cdn.test/storage"
TENANT = "tenant-1"


def make_image_bytes(width=64, height=48, fmt="PNG", color=(200, 30, 30)):
    buf = io.BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    Image.new(mode, (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, content=b""):
        self.status_code = status_code
        self._json = json_data
        self.content = content

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeWordPress:
    """
    In-memory stand-in for ``requests.Session`` serving a WordPress REST API
    and a set of downloadable files.
    """

    def __init__(self, base_url=SOURCE):
        self.base_url = base_url
        self.collections = {"posts": [], "pages": [], "categories": [], "tags": [], "users": [], "media": []}
        self.files = {}
        self.errors = {}  # url -> exception raised on access
        self.calls = []
        self.headers = {}
        self.auth = None
        self.max_redirects = 30

    def calls_to(self, url):
        return [c for c in self.calls if c[0] == url]

    def get(self, url, params=None, timeout=None, allow_redirects=True):
        params = dict(params or {})
        self.calls.append((url, params))
        if url in self.errors:
            raise self.errors[url]
        if url in self.files:
            return FakeResponse(200, content=self.files[url])

        api = f"{self.base_url}/wp-json/wp/v2/"
        if not url.startswith(api):
            return FakeResponse(404)
        rest = url[len(api):]
        if "/" in rest:
            collection, item_id = rest.split("/", 1)
            for item in self.collections.get(collection, []):
                if str(item["id"]) == item_id:
                    return FakeResponse(200, json_data=item)
            return FakeResponse(404, json_data={"code": "rest_post_invalid_id"})

        items = self.collections.get(rest)
        if items is None:
            return FakeResponse(404, json_data={"code": "rest_no_route"})
        per_page = int(params.get("per_page", 10))
        page = int(params.get("page", 1))
        start = (page - 1) * per_page
        if page > 1 and start >= len(items):
            return FakeResponse(400, json_data={"code": "rest_post_invalid_page_number"})
        return FakeResponse(200, json_data=items[start:start + per_page])


def _post(pid, slug, content, **extra):
    data = {
        "id": pid,
        "type": "post",
        "slug": slug,
        "status": "publish",
        "date": "2024-01-10T09:00:00",
        "link": f"{SOURCE}/2024/01/10/{slug}/",
        "title": {"rendered": slug.replace("-", " ").title()},
        "content": {"rendered": content},
        "excerpt": {"rendered": f"<p>Excerpt of {slug}</p>"},
        "author": 0,
        "categories": [],
        "tags": [],
        "featured_media": 0,
    }
    data.update(extra)
    return data


def _page(pid, slug, content, parent=0, menu_order=0):
    return {
        "id": pid,
        "type": "page",
        "slug": slug,
        "status": "publish",
        "date": "2024-01-01T00:00:00",
        "link": f"{SOURCE}/{slug}/",
        "title": {"rendered": slug.title()},
        "content": {"rendered": content},
        "excerpt": {"rendered": ""},
        "author": 5,
        "parent": parent,
        "menu_order": menu_order,
        "featured_media": 0,
    }


PHOTO_URL = f"{SOURCE}/wp-content/uploads/2024/01/photo.png"
COVER_URL = f"{SOURCE}/wp-content/uploads/2024/01/cover.jpg"
MISSING_URL = f"{SOURCE}/wp-content/uploads/2024/01/missing.png"
AVATAR_URL = f"{SOURCE}/wp-content/uploads/avatars/alice-96.png"


def populate_site(wp):
    """A small site: two posts, two pages, three categories, one tag, one writer."""
    wp.collections["categories"] = [
        {"id": 1, "name": "Travel", "slug": "travel"},
        {"id": 2, "name": "福祉", "slug": "%e7%a6%8f%e7%a5%89"},
        {"id": 3, "name": "Travel", "slug": "travel-2"},
    ]
    wp.collections["tags"] = [{"id": 10, "name": "News", "slug": "news"}]
    wp.collections["users"] = [
        {
            "id": 5,
            "name": "Alice Writer",
            "slug": "alice",
            "description": "Writes about travel.",
            "avatar_urls": {"24": f"{SOURCE}/avatar-24.png", "96": AVATAR_URL},
        }
    ]
    wp.collections["media"] = [{"id": 50, "source_url": COVER_URL}]
    wp.collections["posts"] = [
        _post(
            1,
            "first-post",
            f'<p><img src="{PHOTO_URL}"></p>'
            f'<p><a href="{PHOTO_URL}">full size</a></p>'
            f'<p><a href="{SOURCE}/2024/01/10/second-post/">next</a> '
            f'<a href="{SOURCE}/about/">about</a> '
            f'<a href="{SOURCE}/category/travel/">travel</a></p>',
            categories=[1, 2],
            tags=[10],
            author=5,
            featured_media=50,
            yoast_head_json={"og_title": "First post SEO", "og_description": "SEO description"},
        ),
        _post(
            2,
            "second-post",
            f'<p><img src="{MISSING_URL}"></p><p><a href="{SOURCE}/contact/">contact</a></p>',
            categories=[3],
            author=5,
        ),
    ]
    wp.collections["pages"] = [
        _page(100, "about", "<p>About us</p>"),
        _page(101, "team", f'<p>Part of <a href="{SOURCE}/about/">about</a></p>', parent=100, menu_order=2),
    ]
    wp.files[PHOTO_URL] = make_image_bytes(1600, 900, "PNG")
    wp.files[COVER_URL] = make_image_bytes(400, 300, "JPEG")
    wp.files[AVATAR_URL] = make_image_bytes(96, 96, "PNG")
    return wp


@pytest.fixture
def wordpress():
    return FakeWordPress()


@pytest.fixture
def site(wordpress):
    return populate_site(wordpress)


@pytest.fixture
def store():
    s = DestinationStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def tenant_id(store):
    return store.create_tenant("Test Media", "test-media", TENANT)


@pytest.fixture
def storage(tmp_path):
    return LocalAssetStorage(str(tmp_path / "storage"), CDN)


@pytest.fixture
def log_lines():
    lines = []

    def _log(message, level="INFO"):
        lines.append((level, message))

    _log.lines = lines
    return _log


def storage_url_prefix(tenant=TENANT):
    return f"{CDN}/media/{tenant}/wp-migrate/"
