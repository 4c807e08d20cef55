"""
Generation of redirect mapping CSV files.

The :func:`generate_redirects_csv` helper writes a CSV file mapping the
permalinks of the source WordPress site to the paths of the migrated items.
The resulting file is used to configure 301 redirects so that existing links
continue to work after migration.
"""

from __future__ import annotations

import csv
import os
from typing import Dict, Iterable


def destination_path(kind: str, slug: str) -> str:
    """Public path of a migrated item: ``/articles/<slug>`` or ``/<slug>``."""
    return f"/articles/{slug}" if kind == "article" else f"/{slug}"


def generate_redirects_csv(
    items: Iterable[Dict[str, str]],
    *,
    old_domain: str = "",
    new_base: str = "",
    out_path: str = "reports/redirect_map.csv",
) -> str:
    """Generate a CSV mapping old WordPress URLs to new destination URLs.

    Parameters
    ----------
    items:
        Iterable of dictionaries with at least ``kind`` and ``slug`` keys.
        ``permalink`` is used if available to determine the original URL.
    old_domain:
        The base URL of the legacy WordPress site.  If an item has no
        ``permalink`` this is combined with the ``slug`` to construct the
        old URL.
    new_base:
        Base URL of the new site, prefixed to every destination path.  An
        empty value keeps the paths relative.
    out_path:
        Location of the CSV file to be written.  The parent directory is
        created automatically.

    Returns
    -------
    str
        The path of the generated CSV file.
    """
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["OldURL", "NewURL"])
        for item in items:
            slug = item.get("slug", "")
            old_url = item.get("permalink")
            if not old_url and old_domain:
                old_url = f"{old_domain.rstrip('/')}/{slug}/" if slug else old_domain.rstrip("/")
            new_url = f"{new_base.rstrip('/')}{destination_path(item.get('kind', 'article'), slug)}"
            writer.writerow([old_url, new_url])
    return out_path
