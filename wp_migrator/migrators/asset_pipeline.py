"""
Download, transcode and upload of images referenced by migrated content.

Every source image becomes two WebP files in durable storage: a primary
variant no wider than ``max_width`` and a square, center-cropped thumbnail.
Both are described by one :class:`~wp_migrator.models.destination.AssetRecord`
stored in the destination media library.

Work is memoized per content item.  The orchestrator opens one
:class:`AssetContext` per item with :meth:`AssetPipeline.new_context`; inside
that context a source URL is downloaded and uploaded at most once.

Usage example::

    pipeline = AssetPipeline(storage, store)
    assets = pipeline.new_context(tenant_id)
    url = assets.materialize("https://src.example/wp-content/uploads/a.jpg")
    if url is None:
        ...  # keep the original reference
"""

from __future__ import annotations

import hashlib
import io
import os
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from ..models.destination import AssetRecord
from ..utils.errors import console_log
from .asset_storage import AssetStorage
from .destination_store import DestinationStore

LogFn = Callable[..., None]


###############################################################################
# Rate limiting
###############################################################################

class RateLimiter:
    """
    Simple time-based limiter.  Ensures that consecutive calls to
    :meth:`wait` are at least ``interval`` seconds apart.  Used between
    sequential downloads to respect the source server.
    """

    def __init__(
        self,
        interval: float = 0.1,
        time_fn: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self.interval = max(0.0, interval)
        self._time = time_fn
        self._sleep = sleep_fn
        self._last: Optional[float] = None

    def wait(self) -> None:
        if self._last is not None:
            dt = self._time() - self._last
            if dt < self.interval:
                self._sleep(self.interval - dt)
        self._last = self._time()


###############################################################################
# Settings and transcoding
###############################################################################

@dataclass
class AssetSettings:
    max_width: int = 1200
    primary_quality: int = 85
    thumbnail_size: Tuple[int, int] = (300, 300)
    thumbnail_quality: int = 80
    max_redirects: int = 5
    download_delay: float = 0.1
    timeout: float = 30.0

    @classmethod
    def from_config(cls, cfg: Dict) -> "AssetSettings":
        size = cfg.get("thumbnail_size", (300, 300))
        if isinstance(size, int):
            size = (size, size)
        return cls(
            max_width=int(cfg.get("max_width", 1200)),
            primary_quality=int(cfg.get("primary_quality", 85)),
            thumbnail_size=(int(size[0]), int(size[1])),
            thumbnail_quality=int(cfg.get("thumbnail_quality", 80)),
            max_redirects=int(cfg.get("max_redirects", 5)),
            download_delay=float(cfg.get("download_delay", 0.1)),
            timeout=float(cfg.get("timeout", 30.0)),
        )


@dataclass
class TranscodedImage:
    primary: bytes
    thumbnail: bytes
    width: int
    height: int
    original_width: int
    original_height: int
    content_type: str = "image/webp"
    extension: str = ".webp"


def _encode_webp(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="WEBP", quality=quality, method=4)
    return buf.getvalue()


def transcode_image(data: bytes, settings: AssetSettings) -> TranscodedImage:
    """
    Produce the primary and thumbnail WebP variants of ``data``.

    The primary variant keeps the aspect ratio and is never upscaled.

    :raises PIL.UnidentifiedImageError: if ``data`` is not a decodable image.
    :raises OSError: if Pillow fails to decode or encode the image.
    """
    with Image.open(io.BytesIO(data)) as opened:
        img = ImageOps.exif_transpose(opened)
        img.load()
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")

    original_width, original_height = img.size
    primary = img
    if original_width > settings.max_width:
        height = max(1, round(original_height * settings.max_width / original_width))
        primary = img.resize((settings.max_width, height), Image.LANCZOS)

    thumb = ImageOps.fit(img, settings.thumbnail_size, Image.LANCZOS, centering=(0.5, 0.5))
    return TranscodedImage(
        primary=_encode_webp(primary, settings.primary_quality),
        thumbnail=_encode_webp(thumb, settings.thumbnail_quality),
        width=primary.size[0],
        height=primary.size[1],
        original_width=original_width,
        original_height=original_height,
    )


def _url_digest(source_url: str) -> str:
    return hashlib.sha1(source_url.encode("utf-8")).hexdigest()[:8]


def _file_parts(source_url: str) -> Tuple[str, str]:
    name = os.path.basename(unquote(urlparse(source_url).path)) or "image"
    stem, ext = os.path.splitext(name)
    return stem or "image", ext.lower()


###############################################################################
# Pipeline
###############################################################################

class AssetPipeline:
    """
    Shared machinery (HTTP session, storage, limiter) for every item of a run.
    """

    def __init__(
        self,
        storage: Optional[AssetStorage],
        store: Optional[DestinationStore],
        *,
        settings: Optional[AssetSettings] = None,
        dry_run: bool = False,
        session: Optional[requests.Session] = None,
        limiter: Optional[RateLimiter] = None,
        log: LogFn = console_log,
        clock_ms: Callable[[], int] = lambda: time.time_ns() // 1_000_000,
    ) -> None:
        self.storage = storage
        self.store = store
        self.settings = settings or AssetSettings()
        self.dry_run = dry_run
        self.session = session or requests.Session()
        self.session.max_redirects = self.settings.max_redirects
        self.limiter = limiter or RateLimiter(self.settings.download_delay)
        self.log = log
        self._clock_ms = clock_ms

    def new_context(self, tenant_id: str) -> "AssetContext":
        return AssetContext(self, tenant_id)

    def download(self, url: str) -> Optional[bytes]:
        """Fetch ``url`` following redirects; ``None`` when unavailable."""
        self.limiter.wait()
        try:
            resp = self.session.get(url, timeout=self.settings.timeout, allow_redirects=True)
        except requests.RequestException as e:
            self.log(f"Download error for {url}: {e}", "WARNING")
            return None
        if not 200 <= resp.status_code < 300:
            self.log(f"Failed to download: {url} ({resp.status_code})", "WARNING")
            return None
        return resp.content

    def _upload_variants(self, tenant_id: str, source_url: str, data: bytes) -> AssetRecord:
        stem, ext = _file_parts(source_url)
        base = f"media/{tenant_id}/wp-migrate"
        # same-named files from different upload folders must not collide
        stamp = f"{self._clock_ms()}-{_url_digest(source_url)}"
        if ext == ".svg":
            # Vector images are stored untouched and serve as their own thumbnail.
            url = self.storage.upload(data, f"{base}/{stamp}-{stem}.svg", "image/svg+xml")
            return AssetRecord(
                tenant_id=tenant_id, source_url=source_url, url=url, thumbnail_url=url,
                width=0, height=0, size=len(data), content_type="image/svg+xml",
                file_name=f"{stem}.svg",
            )

        image = transcode_image(data, self.settings)
        url = self.storage.upload(image.primary, f"{base}/{stamp}-{stem}{image.extension}", image.content_type)
        thumbnail_url = self.storage.upload(
            image.thumbnail, f"{base}/thumbnails/{stamp}-{stem}_thumb{image.extension}", image.content_type
        )
        return AssetRecord(
            tenant_id=tenant_id, source_url=source_url, url=url, thumbnail_url=thumbnail_url,
            width=image.width, height=image.height, size=len(image.primary),
            content_type=image.content_type, file_name=f"{stem}{image.extension}",
        )

    def process(self, source_url: str, tenant_id: str) -> Optional[AssetRecord]:
        """Download, transcode, upload and record one asset.  Never raises for asset errors."""
        data = self.download(source_url)
        if data is None:
            return None
        try:
            record = self._upload_variants(tenant_id, source_url, data)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            self.log(f"Transcode/upload error for {source_url}: {e}", "WARNING")
            return None
        if self.store is not None:
            try:
                self.store.insert_media(record)
            except Exception as e:
                self.log(f"Could not record media library entry for {source_url}: {e}", "WARNING")
        self.log(f"Uploaded: {record.url}")
        return record


class AssetContext:
    """Per-item view of the pipeline with its own memo of source URLs."""

    def __init__(self, pipeline: AssetPipeline, tenant_id: str) -> None:
        self.pipeline = pipeline
        self.tenant_id = tenant_id
        self.memo: Dict[str, Optional[str]] = {}
        self.records: List[AssetRecord] = []

    @property
    def materialized(self) -> int:
        """Distinct source URLs that received a destination URL (placeholders included)."""
        return sum(1 for url in self.memo.values() if url)

    def materialize(self, source_url: str) -> Optional[str]:
        """Durable URL for ``source_url``, or ``None`` when it is unavailable."""
        if source_url in self.memo:
            return self.memo[source_url]
        if self.pipeline.dry_run:
            stem, ext = _file_parts(source_url)
            url: Optional[str] = f"[NEW_URL:{stem}{ext}]"
            self.pipeline.log(f"Dry-run: would download and upload {source_url}")
        else:
            self.pipeline.log(f"Downloading: {source_url}")
            record = self.pipeline.process(source_url, self.tenant_id)
            if record is not None:
                self.records.append(record)
            url = record.url if record else None
        self.memo[source_url] = url
        return url
