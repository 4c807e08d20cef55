"""Run-level bookkeeping: state machine and aggregate counters."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .destination import utcnow


class RunState(str, Enum):
    INITIALIZED = "initialized"
    FETCHING_REFERENCE_DATA = "fetching_reference_data"
    MIGRATING_CONTENT = "migrating_content"
    RESOLVING_PAGE_HIERARCHY = "resolving_page_hierarchy"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ContentTypeStats:
    """Counters for one content type (articles or pages)."""
    migrated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return self.migrated + self.skipped + self.errors

    def to_dict(self) -> Dict[str, int]:
        return {"migrated": self.migrated, "skipped": self.skipped, "errors": self.errors}


@dataclass
class MigrationResult:
    """Aggregate outcome of one migration run."""
    tenant_id: str
    dry_run: bool = False
    state: RunState = RunState.INITIALIZED
    articles: ContentTypeStats = field(default_factory=ContentTypeStats)
    pages: ContentTypeStats = field(default_factory=ContentTypeStats)
    item_log: List[Dict[str, Any]] = field(default_factory=list)
    review: List[Dict[str, Any]] = field(default_factory=list)
    assets_uploaded: int = 0
    references_created: int = 0
    links_rewritten: int = 0
    hierarchy_links: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def stats_for(self, kind: str) -> ContentTypeStats:
        return self.pages if kind == "page" else self.articles

    def log_item(self, kind: str, outcome: str, entry: Dict[str, Any]) -> None:
        """Remember a skipped or errored item together with its reason."""
        self.item_log.append({"kind": kind, "outcome": outcome, **entry})

    def flag_for_review(self, reason: str, **details: Any) -> None:
        self.review.append({"reason": reason, **details})

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "dry_run": self.dry_run,
            "state": self.state.value,
            "articles": self.articles.to_dict(),
            "pages": self.pages.to_dict(),
            "assets_uploaded": self.assets_uploaded,
            "references_created": self.references_created,
            "links_rewritten": self.links_rewritten,
            "hierarchy_links": self.hierarchy_links,
            "item_log": self.item_log,
            "review": self.review,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }

    def summary_lines(self) -> List[str]:
        lines = [
            "=" * 60,
            "MIGRATION COMPLETE" if self.state is RunState.COMPLETED else f"MIGRATION {self.state.value.upper()}",
            "=" * 60,
            f"Tenant: {self.tenant_id}",
        ]
        for label, stats in (("Articles", self.articles), ("Pages", self.pages)):
            lines.append(
                f"{label}: migrated {stats.migrated}, skipped {stats.skipped}, errors {stats.errors}"
            )
        lines.append(f"Assets uploaded: {self.assets_uploaded}")
        lines.append(f"References created: {self.references_created}")
        lines.append(f"Links rewritten: {self.links_rewritten}")
        lines.append(f"Page parents linked: {self.hierarchy_links}")
        if self.review:
            lines.append(f"Flagged for review: {len(self.review)}")
        if self.duration_seconds is not None:
            lines.append(f"Duration: {self.duration_seconds:.2f} seconds")
        if self.dry_run:
            lines.append("This was a DRY RUN. No data was written.")
        return lines
