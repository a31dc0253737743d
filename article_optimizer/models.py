"""SQLAlchemy models."""

from datetime import datetime, timezone
from typing import List, Optional

import dateutil.parser
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, JSON
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from .database import Base
from .core.exceptions import AlreadyOptimizedError


class Article(Base):
    """Article ingested from the source blog.

    ``reference_entries`` is embedded: a JSON list of
    ``{"title", "url", "scraped_at"}`` dicts owned by the article.
    """
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(Text, nullable=False, unique=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    original_content = Column(Text)
    source = Column(String(100), default="BeyondChats", index=True)
    is_updated = Column(Boolean, default=False, nullable=False, index=True)
    reference_entries = Column(JSON, default=list)

    # Metadata block
    author = Column(String(255))
    published_date = Column(DateTime)
    tags = Column(JSON, default=list)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    @validates('original_content')
    def _validate_original_content(self, key, value):
        if self.original_content and value != self.original_content:
            raise ValueError("original_content is immutable once set")
        return value

    @property
    def references(self) -> List[dict]:
        return list(self.reference_entries or [])

    @property
    def metadata_block(self) -> dict:
        return {
            'author': self.author,
            'published_date': self.published_date.isoformat() if self.published_date else None,
            'tags': list(self.tags or []),
        }

    def apply_optimization(self, content: str, references: List[dict]) -> None:
        """Record the single optimization pass for this article.

        Snapshots the current content as the original (only if no snapshot
        exists yet), replaces the content, attaches the reference entries as a
        unit and flips ``is_updated``.
        """
        if self.is_updated:
            raise AlreadyOptimizedError(self.id)
        if not self.original_content:
            self.original_content = self.content
        self.content = content
        self.reference_entries = [dict(ref) for ref in references]
        self.is_updated = True

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'url': self.url,
            'title': self.title,
            'content': self.content,
            'original_content': self.original_content,
            'source': self.source,
            'is_updated': bool(self.is_updated),
            'references': self.references,
            'metadata': self.metadata_block,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Article id={self.id} url={self.url!r} is_updated={self.is_updated}>"


def parse_published_date(value: Optional[str]) -> Optional[datetime]:
    """Best-effort parse of a scraped date string."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = dateutil.parser.parse(str(value), fuzzy=True)
    except (ValueError, OverflowError):
        return None
    # Stored naive, in UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
