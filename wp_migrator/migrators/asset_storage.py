"""
Durable storage for migrated images.

:class:`LocalAssetStorage` writes blobs below a root directory that is
served as-is by a static host; the public URL of a blob is its storage path
appended to ``public_base_url``.
"""

from __future__ import annotations

import os
from typing import Optional
from urllib.parse import quote, unquote, urlparse


class AssetStorage:
    """Interface of the blob store used by the asset pipeline."""

    def upload(self, data: bytes, path: str, content_type: str) -> str:
        raise NotImplementedError

    def delete(self, path: str) -> bool:
        raise NotImplementedError

    def path_for_url(self, url: str) -> Optional[str]:
        raise NotImplementedError


class LocalAssetStorage(AssetStorage):
    def __init__(self, root_dir: str, public_base_url: str) -> None:
        self.root_dir = os.path.abspath(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root_dir, path.lstrip("/")))
        if os.path.commonpath([full, self.root_dir]) != self.root_dir:
            raise ValueError(f"Storage path escapes the storage root: {path!r}")
        return full

    def upload(self, data: bytes, path: str, content_type: str) -> str:
        full = self._full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as f:
            f.write(data)
        return f"{self.public_base_url}/{quote(path.lstrip('/'))}"

    def delete(self, path: str) -> bool:
        full = self._full_path(path)
        if not os.path.exists(full):
            return False
        os.remove(full)
        return True

    def path_for_url(self, url: str) -> Optional[str]:
        """Storage path of a URL returned by :meth:`upload`, else ``None``."""
        if not url or not url.startswith(self.public_base_url + "/"):
            return None
        return unquote(urlparse(url).path[len(urlparse(self.public_base_url).path):].lstrip("/"))
