"""Pipeline-internal data shapes (never persisted directly)."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

LISTING_PREVIEW_PLACEHOLDER = "Content will be scraped from article page"
SNIPPET_FALLBACK_NOTE = "[Full content unavailable - search snippet only]"


@dataclass
class CandidateItem:
    """A link discovered on a listing page or a search results page."""
    title: str
    url: str
    preview: Optional[str] = None
    author: Optional[str] = None
    published_date: Optional[str] = None

    @property
    def snippet(self) -> str:
        return self.preview or ""


@dataclass
class ArticleMetadata:
    """Metadata fields pulled from a detail page."""
    title: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class ReferenceContent:
    """Harvested text of one competing article."""
    title: str
    url: str
    content: str
    scraped_at: datetime
    from_snippet: bool = False

    def to_entry(self) -> dict:
        """Citation record stored on the article."""
        return {
            'title': self.title,
            'url': self.url,
            'scraped_at': self.scraped_at.isoformat(),
        }


@dataclass
class OptimizedResult:
    """Output of one rewrite pass."""
    content: str
    references: List[dict]
    used_references: bool
    model: Optional[str] = None


class TaskStatus(str, Enum):
    """Lifecycle of a submitted pipeline run."""
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TaskRecord:
    """Observable outcome of one background pipeline run."""
    task_id: str
    kind: str
    article_id: Optional[int] = None
    status: TaskStatus = TaskStatus.QUEUED
    error: Optional[str] = None
    result: Any = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def done(self) -> bool:
        return self.status in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)

    def to_dict(self) -> dict:
        return {
            'task_id': self.task_id,
            'kind': self.kind,
            'article_id': self.article_id,
            'status': self.status.value,
            'error': self.error,
            'created_at': self.created_at.isoformat(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }
