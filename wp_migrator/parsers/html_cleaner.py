"""
Cleanup helpers for HTML produced by the WordPress block editor.

``clean_wordpress_html`` strips editor bookkeeping (``<!-- wp:... -->``
comments, ``[caption]`` shortcodes, empty paragraphs) while leaving embedded
``<script>`` and ``<iframe>`` elements byte-for-byte intact.
``html_to_text`` flattens rendered titles and excerpts to plain text.
"""

from __future__ import annotations

import re
from typing import List

from bs4 import BeautifulSoup

_PROTECTED_RE = re.compile(r"<(script|iframe)\b[\s\S]*?</\1\s*>", re.IGNORECASE)
_WP_COMMENT_RE = re.compile(r"<!--\s*/?wp:[\s\S]*?-->")
_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_CAPTION_OPEN_RE = re.compile(r"\[caption[^\]]*\]", re.IGNORECASE)
_CAPTION_CLOSE_RE = re.compile(r"\[/caption\]", re.IGNORECASE)
_EMPTY_P_RE = re.compile(r"<p[^>]*>(?:\s|&nbsp;|<br\s*/?>)*</p>", re.IGNORECASE)
_BR_RUN_RE = re.compile(r"(?:<br\s*/?>\s*){3,}", re.IGNORECASE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def clean_wordpress_html(html: str) -> str:
    if not html:
        return ""

    protected: List[str] = []

    def _stash(match: re.Match) -> str:
        protected.append(match.group(0))
        return f"\x00{len(protected) - 1}\x00"

    cleaned = _PROTECTED_RE.sub(_stash, html)
    cleaned = _WP_COMMENT_RE.sub("", cleaned)
    cleaned = _COMMENT_RE.sub("", cleaned)
    cleaned = _CAPTION_OPEN_RE.sub("", cleaned)
    cleaned = _CAPTION_CLOSE_RE.sub("", cleaned)
    cleaned = _EMPTY_P_RE.sub("", cleaned)
    cleaned = _BR_RUN_RE.sub("<br><br>", cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned).strip()

    for index, original in enumerate(protected):
        cleaned = cleaned.replace(f"\x00{index}\x00", original)
    return cleaned


def html_to_text(html: str) -> str:
    """Plain text of an HTML fragment with entities decoded and whitespace collapsed."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()
