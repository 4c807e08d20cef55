from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ContentStatus(str, Enum):
    PUBLISH = "publish"
    DRAFT = "draft"
    PRIVATE = "private"
    PENDING = "pending"


def _rendered(value: Any) -> str:
    # WordPress wraps text fields as {"rendered": "..."}
    if isinstance(value, dict):
        value = value.get("rendered")
    return value if isinstance(value, str) else ""


def _optional_ref(value: Any) -> Optional[int]:
    if value in (None, "", 0, "0"):
        return None
    return int(value)


class SourceRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: int


class TaxonomyRecord(SourceRecord):
    """A category or tag as exposed by ``/wp/v2/categories`` or ``/wp/v2/tags``."""

    name: str = ""
    slug: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _unwrap_name(cls, v: Any) -> str:
        return _rendered(v)


class AuthorRecord(SourceRecord):
    name: str = ""
    slug: str = ""
    bio: str = Field("", alias="description")
    avatar_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _pick_avatar(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("avatar_url"):
            return data
        avatars = data.get("avatar_urls") or {}
        if isinstance(avatars, dict) and avatars:
            # keys are pixel sizes ("24", "48", "96"); keep the largest
            size = max(avatars, key=lambda k: int(k) if str(k).isdigit() else 0)
            data = {**data, "avatar_url": avatars[size]}
        return data

    @field_validator("bio", mode="before")
    @classmethod
    def _none_bio(cls, v: Any) -> str:
        return v or ""


class SourceContentItem(SourceRecord):
    """One post or page.  Immutable for the lifetime of a run."""

    type: str = "post"
    title: str = ""
    content: str = ""
    excerpt: str = ""
    slug: str = ""
    status: ContentStatus = ContentStatus.PUBLISH
    date: Optional[datetime] = None
    link: Optional[str] = None
    author: Optional[int] = None
    categories: list[int] = Field(default_factory=list)
    tags: list[int] = Field(default_factory=list)
    featured_media: Optional[int] = None
    parent: Optional[int] = None
    menu_order: int = 0
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_seo(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        seo = data.get("yoast_head_json") or {}
        if isinstance(seo, dict) and seo:
            data = {
                **data,
                "meta_title": data.get("meta_title") or seo.get("og_title") or seo.get("title"),
                "meta_description": data.get("meta_description")
                or seo.get("og_description")
                or seo.get("description"),
            }
        return data

    @field_validator("title", "content", "excerpt", mode="before")
    @classmethod
    def _unwrap_rendered(cls, v: Any) -> str:
        return _rendered(v)

    @field_validator("status", mode="before")
    @classmethod
    def _known_status(cls, v: Any) -> Any:
        # "future" and plugin statuses are treated as unpublished
        if v in {s.value for s in ContentStatus}:
            return v
        return ContentStatus.DRAFT if v else ContentStatus.PUBLISH

    @field_validator("author", "featured_media", "parent", mode="before")
    @classmethod
    def _zero_is_none(cls, v: Any) -> Optional[int]:
        return _optional_ref(v)

    @field_validator("categories", "tags", mode="before")
    @classmethod
    def _ids(cls, v: Any) -> list[int]:
        return [int(i) for i in (v or []) if i]

    @field_validator("menu_order", mode="before")
    @classmethod
    def _order(cls, v: Any) -> int:
        return int(v or 0)

    @property
    def is_page(self) -> bool:
        return self.type == "page"

    @property
    def is_published(self) -> bool:
        return self.status is ContentStatus.PUBLISH
