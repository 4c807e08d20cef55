"""
Destination-safe slugs for taxonomy and writer records.

Source slugs are frequently percent-encoded native-script text
(``%e7%a6%8f%e7%a5%89``) which the destination store does not accept.
:func:`sanitize_slug` always returns a value made of ASCII lowercase
letters, digits and hyphens, at least three characters long.
"""

from __future__ import annotations

import hashlib
import json
import re
import time
import unicodedata
from html import unescape
from typing import Dict, Mapping, Optional
from urllib.parse import unquote

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
MIN_SLUG_LENGTH = 3

# Display name -> slug.  Exact matches only, after canonicalization.
_TRANSLITERATIONS: Dict[str, str] = {
    "情報サイト": "info-site",
    "障害者割引": "disability-discount",
    "言語障害": "speech-disorder",
    "障害児家族": "disability-family",
    "障害児ママ": "disability-mom",
    "障害児の親": "disability-parent",
    "障害者": "disabled-person",
    "聴覚障害": "hearing-impairment",
    "内部障害": "internal-disability",
    "身体障害": "physical-disability",
    "視覚障害": "visual-impairment",
    "障害者手帳": "disability-certificate",
    "障害年金": "disability-pension",
    "障害者年金": "disability-pension",
    "医療的ケア児": "medical-care-child",
    "就労支援": "employment-support",
    "就職活動": "job-hunting",
    "転職": "career-change",
    "福祉": "welfare",
    "介護": "care",
    "結婚": "marriage",
    "恋愛": "romance",
    "住宅": "housing",
    "法律": "law",
    "旅行": "travel",
    "未分類": "uncategorized",
    "お知らせ": "news",
    "ライター紹介": "writer-intro",
    "メディア掲載": "media-coverage",
}


def _strip_accents(text: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFKD", text) if unicodedata.category(c) != "Mn"
    )


def canonical_key(text: str) -> str:
    # Unescape HTML entities, trim, collapse whitespace, case-fold
    t = unescape(text or "").strip()
    t = re.sub(r"\s+", " ", t)
    return t.casefold()


def _build_table(entries: Mapping[str, str]) -> Dict[str, str]:
    return {canonical_key(name): slug for name, slug in entries.items() if name and slug}


DEFAULT_TABLE: Dict[str, str] = _build_table(_TRANSLITERATIONS)


def load_slug_table(path: Optional[str] = None) -> Dict[str, str]:
    """
    Return the default transliteration table, extended with the entries of
    the JSON object stored at ``path`` when given.  File entries win over
    the built-in ones.
    """
    table = dict(DEFAULT_TABLE)
    if path:
        with open(path, "r", encoding="utf-8") as f:
            table.update(_build_table(json.load(f)))
    return table


def _to_base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def hash_slug(seed: str) -> str:
    """Deterministic ``item-<base36>`` slug for ``seed``."""
    digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()
    return f"item-{_to_base36(int(digest[:12], 16))}"


def _is_valid(slug: str) -> bool:
    return bool(SLUG_RE.match(slug)) and len(slug) >= MIN_SLUG_LENGTH


def sanitize_slug(
    candidate: Optional[str],
    name: Optional[str] = None,
    table: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Turn ``candidate`` (a source slug) into a destination-safe slug.

    Lookup order: the candidate itself when already valid, the
    transliteration table keyed by ``name``, the table keyed by the
    URL-decoded candidate, an ASCII-folded version of the candidate, and
    finally a hash of ``name``/``candidate``.  Never raises.
    """
    table = DEFAULT_TABLE if table is None else table
    candidate = candidate or ""

    if _is_valid(candidate):
        return candidate

    if name:
        hit = table.get(canonical_key(name))
        if hit:
            return hit

    decoded = unquote(candidate)
    if decoded:
        hit = table.get(canonical_key(decoded))
        if hit:
            return hit

    folded = _strip_accents(decoded).lower()
    folded = re.sub(r"[^a-z0-9-]", "-", folded)
    folded = re.sub(r"-{2,}", "-", folded).strip("-")
    if _is_valid(folded):
        return folded

    seed = name or candidate or str(time.time_ns())
    return hash_slug(seed)
