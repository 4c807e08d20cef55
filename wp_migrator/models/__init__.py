"""Typed records for source payloads, destination rows and run results."""

from .source import (
    AuthorRecord,
    ContentStatus,
    SourceContentItem,
    TaxonomyRecord,
)
from .destination import (
    AssetRecord,
    DestinationContentRecord,
    ReferenceMapping,
    utcnow,
)
from .result import ContentTypeStats, MigrationResult, RunState

__all__ = [
    "AuthorRecord",
    "ContentStatus",
    "SourceContentItem",
    "TaxonomyRecord",
    "AssetRecord",
    "DestinationContentRecord",
    "ReferenceMapping",
    "utcnow",
    "ContentTypeStats",
    "MigrationResult",
    "RunState",
]
