from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in DuckDB ``TIMESTAMP`` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DestinationContentRecord(BaseModel):
    """An article or page as written to the destination store."""

    model_config = ConfigDict(str_strip_whitespace=True)

    tenant_id: str
    slug: str = Field(..., min_length=1)
    title: str = ""
    content: str = ""
    excerpt: str = ""
    category_ids: list[str] = Field(default_factory=list)
    tag_ids: list[str] = Field(default_factory=list)
    writer_id: Optional[str] = None
    writer_name: Optional[str] = None
    featured_image: Optional[str] = None
    is_published: bool = True
    published_at: Optional[datetime] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    # pages only
    parent_id: Optional[str] = None
    sort_order: int = 0
    # provenance
    wp_migrated: bool = True
    wp_migrated_at: datetime = Field(default_factory=utcnow)
    wp_original_id: int

    @field_validator("category_ids", "tag_ids", mode="before")
    @classmethod
    def _dedup_ids(cls, v: Optional[list[str]]):
        if not v:
            return []
        seen = set()
        deduped = []
        for item in v:
            if item not in seen:
                seen.add(item)
                deduped.append(item)
        return deduped

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump()
        row["category_ids"] = json.dumps(self.category_ids)
        row["tag_ids"] = json.dumps(self.tag_ids)
        return row


@dataclass(frozen=True)
class AssetRecord:
    """One image uploaded to durable storage, primary plus thumbnail."""

    tenant_id: str
    source_url: str
    url: str
    thumbnail_url: str
    width: int
    height: int
    size: int
    content_type: str
    file_name: str


@dataclass(frozen=True)
class ReferenceMapping:
    """Resolution of a source taxonomy/author ID to a destination ID."""

    kind: str
    source_id: int
    destination_id: str
    resolved_by: str  # "name", "slug", "created" or "placeholder"
