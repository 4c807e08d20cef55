import hashlib
import io
import os

import pytest
import requests
from PIL import Image

from conftest import SOURCE, make_image_bytes, storage_url_prefix
from wp_migrator.migrators.asset_pipeline import AssetPipeline, AssetSettings, RateLimiter, transcode_image

JPG = f"{SOURCE}/wp-content/uploads/2024/01/Big%20Photo.JPG"


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def time(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def pipeline(wordpress, storage, store, log_lines):
    return AssetPipeline(
        storage,
        store,
        settings=AssetSettings(download_delay=0),
        session=wordpress,
        log=log_lines,
        clock_ms=lambda: 1700000000000,
    )


def _size(data):
    with Image.open(io.BytesIO(data)) as img:
        return img.format, img.size


def test_transcode_limits_width_and_crops_thumbnail():
    image = transcode_image(make_image_bytes(1600, 800), AssetSettings())
    assert (image.original_width, image.original_height) == (1600, 800)
    assert (image.width, image.height) == (1200, 600)
    assert _size(image.primary) == ("WEBP", (1200, 600))
    assert _size(image.thumbnail) == ("WEBP", (300, 300))


def test_transcode_never_upscales():
    image = transcode_image(make_image_bytes(200, 100, "JPEG"), AssetSettings())
    assert _size(image.primary) == ("WEBP", (200, 100))


def test_materialize_uploads_primary_and_thumbnail(pipeline, wordpress, store, storage, tenant_id):
    wordpress.files[JPG] = make_image_bytes(1400, 700, "JPEG")
    assets = pipeline.new_context(tenant_id)

    url = assets.materialize(JPG)

    stamp = "1700000000000-" + hashlib.sha1(JPG.encode("utf-8")).hexdigest()[:8]
    assert url == storage_url_prefix() + stamp + "-Big%20Photo.webp"
    (record,) = assets.records
    assert record.thumbnail_url == storage_url_prefix() + "thumbnails/" + stamp + "-Big%20Photo_thumb.webp"
    assert (record.width, record.height) == (1200, 600)
    assert record.content_type == "image/webp"
    assert os.path.exists(os.path.join(storage.root_dir, storage.path_for_url(url)))
    assert os.path.exists(os.path.join(storage.root_dir, storage.path_for_url(record.thumbnail_url)))
    (row,) = store.migrated_rows("media_library", tenant_id)
    assert row["source_url"] == JPG
    assert row["url"] == url


def test_same_url_is_processed_once_per_context(pipeline, wordpress, tenant_id):
    wordpress.files[JPG] = make_image_bytes()
    assets = pipeline.new_context(tenant_id)
    assert assets.materialize(JPG) == assets.materialize(JPG)
    assert len(wordpress.calls_to(JPG)) == 1
    assert assets.materialized == 1
    # a new item starts with a fresh memo
    pipeline.new_context(tenant_id).materialize(JPG)
    assert len(wordpress.calls_to(JPG)) == 2


def test_unavailable_assets_yield_none(pipeline, wordpress, tenant_id, store, log_lines):
    broken = f"{SOURCE}/wp-content/uploads/broken.png"
    offline = f"{SOURCE}/wp-content/uploads/offline.png"
    wordpress.files[broken] = b"definitely not an image"
    wordpress.errors[offline] = requests.ConnectionError("down")
    assets = pipeline.new_context(tenant_id)

    assert assets.materialize(f"{SOURCE}/wp-content/uploads/404.png") is None
    assert assets.materialize(broken) is None
    assert assets.materialize(offline) is None
    assert assets.materialized == 0
    assert store.count("media_library", tenant_id) == 0
    assert len([level for level, _ in log_lines.lines if level == "WARNING"]) == 3


def test_svg_is_stored_unchanged(pipeline, wordpress, storage, tenant_id):
    svg_url = f"{SOURCE}/wp-content/uploads/logo.svg"
    body = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"></svg>'
    wordpress.files[svg_url] = body
    assets = pipeline.new_context(tenant_id)
    url = assets.materialize(svg_url)
    assert url.endswith("-logo.svg")
    assert assets.records[0].thumbnail_url == url
    with open(os.path.join(storage.root_dir, storage.path_for_url(url)), "rb") as f:
        assert f.read() == body


def test_dry_run_returns_placeholder_without_network(wordpress, storage, store, tenant_id, log_lines):
    pipeline = AssetPipeline(storage, store, dry_run=True, session=wordpress, log=log_lines)
    assets = pipeline.new_context(tenant_id)
    assert assets.materialize(JPG) == "[NEW_URL:Big Photo.jpg]"
    assert wordpress.calls == []
    assert store.count("media_library", tenant_id) == 0


def test_session_redirect_limit_is_configured(wordpress, storage, store):
    AssetPipeline(storage, store, settings=AssetSettings(max_redirects=3), session=wordpress)
    assert wordpress.max_redirects == 3


def test_rate_limiter_spaces_calls():
    clock = FakeClock()
    limiter = RateLimiter(0.1, time_fn=clock.time, sleep_fn=clock.sleep)
    limiter.wait()
    clock.now += 0.03
    limiter.wait()
    clock.now += 0.5
    limiter.wait()
    assert clock.sleeps == [pytest.approx(0.07)]


def test_settings_from_config_accepts_square_size():
    settings = AssetSettings.from_config({"thumbnail_size": 150, "max_width": 800})
    assert settings.thumbnail_size == (150, 150)
    assert settings.max_width == 800
    assert settings.primary_quality == 85


def test_same_file_name_in_different_folders_gets_distinct_paths(pipeline, wordpress, storage, tenant_id):
    older = f"{SOURCE}/wp-content/uploads/2023/01/a.jpg"
    newer = f"{SOURCE}/wp-content/uploads/2024/01/a.jpg"
    wordpress.files[older] = make_image_bytes(40, 40, "JPEG", color=(10, 10, 10))
    wordpress.files[newer] = make_image_bytes(80, 40, "JPEG", color=(250, 250, 250))
    assets = pipeline.new_context(tenant_id)

    first, second = assets.materialize(older), assets.materialize(newer)

    assert first != second
    for url, size in ((first, (40, 40)), (second, (80, 40))):
        with open(os.path.join(storage.root_dir, storage.path_for_url(url)), "rb") as f:
            assert _size(f.read()) == ("WEBP", size)


def test_oversized_image_is_unavailable_not_fatal(pipeline, wordpress, tenant_id, store, log_lines, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    wordpress.files[JPG] = make_image_bytes(300, 300)
    assets = pipeline.new_context(tenant_id)

    assert assets.materialize(JPG) is None
    assert store.count("media_library", tenant_id) == 0
    assert any(level == "WARNING" and JPG in message for level, message in log_lines.lines)
