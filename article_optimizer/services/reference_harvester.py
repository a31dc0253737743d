"""Reference harvesting: full-page text for each search candidate, snippet as fallback."""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from ..browser.fetcher import BrowserSession, DocumentFetcher, WaitPolicy
from ..config import Settings, get_settings
from ..core.exceptions import FetchError
from ..extraction.extraction_constants import (
    MAX_REFERENCE_LENGTH,
    MIN_REFERENCE_LENGTH,
    REFERENCE_CONTENT_SELECTORS,
)
from ..extraction.selector_cascade import SelectorCascadeExtractor
from ..schemas import CandidateItem, ReferenceContent, SNIPPET_FALLBACK_NOTE
from ..utils.logging_config import log_operation

logger = logging.getLogger(__name__)


class ReferenceHarvester:
    """Turns search candidates into reference texts for the optimizer."""

    def __init__(self, fetcher: DocumentFetcher, extractor: Optional[SelectorCascadeExtractor] = None,
                 settings: Optional[Settings] = None):
        self.fetcher = fetcher
        self.extractor = extractor or SelectorCascadeExtractor()
        self.settings = settings or get_settings()

    async def harvest(self, candidates: List[CandidateItem]) -> List[ReferenceContent]:
        """
        Scrape every candidate in order.

        A candidate is kept with its page text when that text is long enough,
        with its annotated search snippet otherwise, and dropped when neither
        is available. ``BrowserLaunchError`` propagates.
        """
        if not candidates:
            return []

        references: List[ReferenceContent] = []
        async with self.fetcher.session() as session:
            for index, candidate in enumerate(candidates):
                if index:
                    await asyncio.sleep(self.settings.reference_delay)
                reference = await self.harvest_one(session, candidate)
                if reference:
                    references.append(reference)

        log_operation(logger, "harvest", "completed", candidates=len(candidates), kept=len(references))
        return references

    async def harvest_one(self, session: BrowserSession, candidate: CandidateItem) -> Optional[ReferenceContent]:
        logger.info(f"📖 Scraping reference: {candidate.url}")
        content = await self.scrape_text(session, candidate.url)

        if len(content) >= MIN_REFERENCE_LENGTH:
            logger.info(f"✅ Scraped {len(content)} characters from {candidate.url}")
            return ReferenceContent(
                title=candidate.title,
                url=candidate.url,
                content=content,
                scraped_at=datetime.utcnow(),
            )

        snippet = candidate.snippet.strip()
        if snippet:
            logger.warning(f"⚠️ Using search snippet for {candidate.url}")
            return ReferenceContent(
                title=candidate.title,
                url=candidate.url,
                content=f"{SNIPPET_FALLBACK_NOTE}\n\n{snippet}",
                scraped_at=datetime.utcnow(),
                from_snippet=True,
            )

        log_operation(logger, "harvest", "skipped", url=candidate.url, reason="no content and no snippet")
        return None

    async def scrape_text(self, session: BrowserSession, url: str) -> str:
        """Cleaned reference text, or an empty string when the page cannot be read."""
        try:
            handle = await session.load(url, wait_policy=WaitPolicy.DOM_CONTENT_LOADED)
        except FetchError as e:
            logger.warning(f"⚠️ Could not load reference {url}: {e}")
            return ""

        return self.extractor.extract_content(
            handle,
            REFERENCE_CONTENT_SELECTORS,
            max_length=MAX_REFERENCE_LENGTH,
            strip_unwanted=True,
        )
