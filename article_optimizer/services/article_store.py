"""Persistence boundary for articles."""

import logging
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.exceptions import DatabaseError
from ..models import Article

logger = logging.getLogger(__name__)


class ArticleStore:
    """Single-record reads and writes keyed by URL or id."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        if session_factory is None:
            from ..database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory

    async def find_by_url(self, url: str) -> Optional[Article]:
        async with self.session_factory() as session:
            result = await session.execute(select(Article).where(Article.url == url))
            return result.scalar_one_or_none()

    async def find_by_id(self, article_id: int) -> Optional[Article]:
        async with self.session_factory() as session:
            return await session.get(Article, article_id)

    async def insert(self, article: Article) -> Optional[Article]:
        """Insert if the URL is new; returns ``None`` when it already exists."""
        async with self.session_factory() as session:
            existing = await session.execute(select(Article.id).where(Article.url == article.url))
            if existing.scalar_one_or_none() is not None:
                return None
            session.add(article)
            try:
                await session.commit()
            except IntegrityError:
                # Lost a race with a concurrent insert of the same URL
                await session.rollback()
                logger.info(f"Article already stored: {article.url}")
                return None
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to insert article {article.url}: {e}") from e
            await session.refresh(article)
            return article

    async def save(self, article: Article) -> Article:
        """Write the article's current field values."""
        async with self.session_factory() as session:
            try:
                merged = await session.merge(article)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError(f"Failed to save article {article.id}: {e}") from e
            await session.refresh(merged)
            return merged

    async def list_pending(self, source: Optional[str] = None) -> List[Article]:
        """Articles not yet optimized, oldest first."""
        query = select(Article).where(Article.is_updated.is_(False)).order_by(Article.id)
        if source:
            query = query.where(Article.source == source)
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_articles(self, limit: int = 50) -> List[Article]:
        async with self.session_factory() as session:
            result = await session.execute(select(Article).order_by(Article.id).limit(limit))
            return list(result.scalars().all())

    async def count_by_status(self, source: Optional[str] = None) -> Dict[str, int]:
        query = select(Article.is_updated, func.count(Article.id)).group_by(Article.is_updated)
        if source:
            query = query.where(Article.source == source)
        async with self.session_factory() as session:
            result = await session.execute(query)
            counts = {bool(flag): count for flag, count in result.all()}
        optimized = counts.get(True, 0)
        original = counts.get(False, 0)
        return {'total': optimized + original, 'optimized': optimized, 'original': original}
