"""
Writers for the destination side of the migration.

This subpackage provides the DuckDB-backed destination store, durable
storage for images, the download/transcode/upload asset pipeline with its
rate limiting, and the get-or-create resolution of categories, tags and
writers.
"""

from .asset_pipeline import AssetPipeline, AssetSettings, RateLimiter
from .asset_storage import AssetStorage, LocalAssetStorage
from .destination_store import DestinationStore
from .references import ReferenceResolver

__all__ = [
    "AssetPipeline",
    "AssetSettings",
    "RateLimiter",
    "AssetStorage",
    "LocalAssetStorage",
    "DestinationStore",
    "ReferenceResolver",
]
