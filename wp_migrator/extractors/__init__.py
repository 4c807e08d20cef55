"""
Extractors for the source WordPress site.

This subpackage reads posts, pages, taxonomies, users and media through
the WordPress REST API and normalizes every payload into the typed records
used by the migrator.
"""

from .wordpress_extractor import WordPressExtractor

__all__ = ["WordPressExtractor"]
