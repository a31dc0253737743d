"""Pipeline orchestrator: crawl ingestion and per-article optimization."""

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

from .browser.fetcher import BrowserSession, DocumentFetcher
from .config import Settings, get_settings
from .core.exceptions import (
    AlreadyOptimizedError,
    ArticleNotFoundError,
    BrowserLaunchError,
    FetchError,
)
from .extraction.extraction_constants import UNABLE_TO_EXTRACT
from .extraction.selector_cascade import SelectorCascadeExtractor
from .models import Article, parse_published_date
from .schemas import CandidateItem, TaskRecord
from .search.reference_search import ReferenceSearch
from .services.article_store import ArticleStore
from .services.content_optimizer import ContentOptimizer
from .services.reference_harvester import ReferenceHarvester
from .services.task_runner import PipelineTaskRunner
from .sources.listing_crawler import ListingCrawler
from .utils.logging_config import get_logger, log_operation

logger = get_logger(__name__, "PIPELINE")


class PipelineOrchestrator:
    """
    Sequences the pipeline components.

    Crawl: listing discovery, per-item dedup against the store, detail
    extraction, insert. Optimize: search, harvest, rewrite, save, under a
    per-article lock and only for articles not yet optimized.
    """

    def __init__(self,
                 store: Optional[ArticleStore] = None,
                 fetcher: Optional[DocumentFetcher] = None,
                 crawler: Optional[ListingCrawler] = None,
                 extractor: Optional[SelectorCascadeExtractor] = None,
                 search: Optional[ReferenceSearch] = None,
                 harvester: Optional[ReferenceHarvester] = None,
                 optimizer: Optional[ContentOptimizer] = None,
                 runner: Optional[PipelineTaskRunner] = None,
                 settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.store = store or ArticleStore()
        self.fetcher = fetcher or DocumentFetcher(self.settings)
        self.extractor = extractor or SelectorCascadeExtractor()
        self.crawler = crawler or ListingCrawler(self.fetcher, self.settings)
        self.search = search or ReferenceSearch(self.settings)
        self.harvester = harvester or ReferenceHarvester(self.fetcher, self.extractor, self.settings)
        self.optimizer = optimizer or ContentOptimizer(settings=self.settings)
        self.runner = runner or PipelineTaskRunner(self.settings.max_workers)

    # ------------------------------------------------------------------
    # Crawl
    # ------------------------------------------------------------------

    async def run_crawl(self, index_url: Optional[str] = None, target_count: Optional[int] = None) -> Dict[str, Any]:
        """Discover listing items and store the ones not seen before.

        Raises:
            BrowserLaunchError: the browser could not start; nothing was written
        """
        index_url = index_url or self.settings.source_index_url
        target_count = target_count or self.settings.crawl_target_count
        stats: Dict[str, Any] = {
            'discovered': 0,
            'skipped_existing': 0,
            'created': 0,
            'failed': 0,
            'total_stored': 0,
        }
        log_operation(logger, "crawl", "started", url=index_url, target=target_count)

        async with self.fetcher.session() as session:
            try:
                candidates = await self.crawler.discover_in_session(session, index_url, target_count)
            except FetchError as e:
                log_operation(logger, "crawl", "failed", url=index_url, error=e)
                stats['error'] = str(e)
                return stats

            stats['discovered'] = len(candidates)
            visited = 0
            for candidate in candidates:
                if await self.store.find_by_url(candidate.url):
                    logger.info(f"⏭️ Article already exists: {candidate.title}")
                    stats['skipped_existing'] += 1
                    continue

                if visited:
                    await asyncio.sleep(self.settings.crawl_item_delay)
                visited += 1

                try:
                    article = await self.ingest_candidate(session, candidate)
                except FetchError as e:
                    log_operation(logger, "crawl", "skipped", url=candidate.url, error=e)
                    stats['failed'] += 1
                    continue

                if await self.store.insert(article) is None:
                    stats['skipped_existing'] += 1
                    continue
                stats['created'] += 1
                logger.info(f"✅ Saved: {article.title}")

        counts = await self.store.count_by_status(self.settings.source_name)
        stats['total_stored'] = counts['total']
        log_operation(logger, "crawl", "completed", **stats)
        return stats

    async def ingest_candidate(self, session: BrowserSession, candidate: CandidateItem) -> Article:
        """Load a detail page and build the (unsaved) article for it."""
        logger.info(f"📖 Scraping article: {candidate.title}")
        handle = await session.load(candidate.url)
        return self.build_article(candidate, handle)

    def build_article(self, candidate: CandidateItem, document) -> Article:
        """Detail-page values win over listing-card values."""
        metadata = self.extractor.extract_metadata(document)
        content = self.extractor.extract_content(document)
        if not content:
            logger.warning(f"⚠️ No usable content on {candidate.url}")
            content = UNABLE_TO_EXTRACT

        published = (
            parse_published_date(metadata.date)
            or parse_published_date(candidate.published_date)
            or datetime.utcnow()
        )
        return Article(
            url=candidate.url,
            title=metadata.title or candidate.title,
            content=content,
            source=self.settings.source_name,
            is_updated=False,
            reference_entries=[],
            author=metadata.author or candidate.author or 'Unknown',
            published_date=published,
            tags=metadata.tags,
        )

    # ------------------------------------------------------------------
    # Optimize
    # ------------------------------------------------------------------

    async def optimize_article(self, article_id: int) -> Article:
        """
        Run the single optimization pass for one article.

        Nothing is written unless every step succeeds.

        Raises:
            ArticleNotFoundError: no such article
            AlreadyOptimizedError: the article was optimized before
            APIError: the generative service failed
            BrowserLaunchError: the browser could not start
        """
        async with self.runner.article_lock(article_id):
            article = await self.store.find_by_id(article_id)
            if article is None:
                raise ArticleNotFoundError(article_id)
            if article.is_updated:
                raise AlreadyOptimizedError(article_id)

            log_operation(logger, "optimize", "started", article_id=article_id, title=article.title)
            try:
                candidates = await self.search.search(article.title)
                log_operation(logger, "search", "completed", article_id=article_id, candidates=len(candidates))

                references = await self.harvester.harvest(candidates) if candidates else []
                result = await self.optimizer.optimize(article, references)

                article.apply_optimization(result.content, result.references)
                saved = await self.store.save(article)
            except Exception as e:
                log_operation(logger, "optimize", "failed", article_id=article_id, error=e)
                raise

            log_operation(
                logger, "optimize", "completed",
                article_id=article_id, references=len(result.references),
            )
            return saved

    async def optimize_pending(self) -> Dict[str, Any]:
        """Optimize every stored article that has not been optimized yet."""
        pending = await self.store.list_pending()
        stats: Dict[str, Any] = {
            'processed': 0,
            'optimized': 0,
            'failed': 0,
            'skipped': 0,
        }
        logger.info(f"📚 Found {len(pending)} articles to optimize")

        for index, article in enumerate(pending):
            if index:
                await asyncio.sleep(self.settings.article_delay)
            stats['processed'] += 1
            try:
                await self.optimize_article(article.id)
                stats['optimized'] += 1
            except AlreadyOptimizedError:
                stats['skipped'] += 1
            except BrowserLaunchError as e:
                logger.error(f"❌ Browser unavailable, aborting run: {e}")
                stats['failed'] += 1
                stats['aborted'] = True
                break
            except Exception as e:
                # One article failing must not stop the batch
                logger.error(f"❌ Failed to optimize article {article.id}: {e}")
                stats['failed'] += 1

        counts = await self.store.count_by_status()
        stats['total_optimized'] = counts['optimized']
        stats['total_original'] = counts['original']
        log_operation(logger, "optimize_pending", "completed", **stats)
        return stats

    # ------------------------------------------------------------------
    # Trigger boundary
    # ------------------------------------------------------------------

    async def request_optimization(self, article_id: int) -> TaskRecord:
        """
        Accept or reject an optimization request, then run it in the background.

        Raises:
            ArticleNotFoundError: no such article
            AlreadyOptimizedError: the article was optimized before
        """
        article = await self.store.find_by_id(article_id)
        if article is None:
            raise ArticleNotFoundError(article_id)
        if article.is_updated:
            raise AlreadyOptimizedError(article_id)

        for record in self.runner.list_tasks(kind="optimize"):
            if record.article_id == article_id and not record.done:
                logger.info(f"Optimization of article {article_id} already in progress: {record.task_id}")
                return record

        return await self.runner.submit("optimize", lambda: self.optimize_article(article_id), article_id=article_id)

    async def request_crawl(self) -> TaskRecord:
        return await self.runner.submit("crawl", self.run_crawl)

    async def close(self):
        await self.runner.stop()
