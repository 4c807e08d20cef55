"""
Parsers and converters used by the migration pipeline.

:mod:`wp_migrator.parsers.content_rewriter` rewrites image references and
internal links; :mod:`wp_migrator.parsers.html_cleaner` strips block-editor
markup and flattens titles and excerpts to text.
"""

from .content_rewriter import ContentRewriter, LinkRewriteRule, RewriteResult, build_link_rules, find_asset_urls
from .html_cleaner import clean_wordpress_html, html_to_text

__all__ = [
    "ContentRewriter",
    "LinkRewriteRule",
    "RewriteResult",
    "build_link_rules",
    "find_asset_urls",
    "clean_wordpress_html",
    "html_to_text",
]
