"""Search engine results page scraped through a stealth browser session."""

import asyncio
import logging
import time
from typing import List, Optional
from urllib.parse import parse_qs, urlencode, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from ..browser.fetcher import BrowserSession, DocumentFetcher, DocumentHandle, WaitPolicy
from ..config import Settings, get_settings
from ..core.cascade import first_success, named
from ..core.exceptions import FetchError
from ..schemas import CandidateItem
from .base import MIN_RESULT_TITLE_LENGTH, SearchStrategy, dedupe_by_url, is_excluded

logger = logging.getLogger(__name__)

SEARCH_PAGE_TIMEOUT_MS = 30_000

BLOCK_INDICATORS = ('unusual traffic', 'captcha', 'not a robot')

RESULT_CONTAINER_SELECTORS = [
    'div.g',
    'div[data-sokoban-container]',
    '.tF2Cxc',
    'div.MjjYud',
    'div[jsname]',
]
RESULT_TITLE_SELECTORS = ['h3', '[role="heading"]']
RESULT_SNIPPET_SELECTORS = [
    '.VwiC3b',
    '[data-sncf]',
    '.IsZvec',
    'span.aCOpRe',
    'div[style*="-webkit-line-clamp"]',
]


class BrowserSearchStrategy(SearchStrategy):
    """Loads the public results page like a person would and reads the organic results."""

    name = "browser_search"

    def __init__(self, fetcher: Optional[DocumentFetcher] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.fetcher = fetcher or DocumentFetcher(self.settings, stealth=True)

    def build_search_url(self, query: str) -> str:
        full_query = f"{query}{self.settings.search_query_suffix or ''}"
        return f"{self.settings.search_engine_url}?{urlencode({'q': full_query, 'hl': 'en'})}"

    async def search(self, query: str, excluded_domains: List[str], max_results: int) -> List[CandidateItem]:
        url = self.build_search_url(query)
        async with self.fetcher.session() as session:
            handle = await session.load(
                url, wait_policy=WaitPolicy.DOM_CONTENT_LOADED, timeout_ms=SEARCH_PAGE_TIMEOUT_MS
            )

            if self.is_blocked(handle):
                logger.warning("🤖 Search engine is showing a challenge page")
                handle = await self.wait_for_challenge(session, handle)
                if handle is None:
                    return []

            results = self.parse_results(handle.soup, handle.base_url, excluded_domains)
            if not results:
                logger.warning("No result containers matched, collecting external links instead")
                results = self.collect_external_links(handle.soup, handle.base_url, excluded_domains)

        logger.info(f"🔍 Browser search found {len(results)} candidates")
        return results[:max_results]

    def is_blocked(self, handle: DocumentHandle) -> bool:
        if '/sorry/' in (handle.final_url or ''):
            return True
        text = handle.body_text().lower()
        return any(indicator in text for indicator in BLOCK_INDICATORS)

    def has_results(self, soup: BeautifulSoup) -> bool:
        return any(soup.select_one(selector) for selector in RESULT_CONTAINER_SELECTORS)

    async def wait_for_challenge(self, session: BrowserSession,
                                 handle: DocumentHandle) -> Optional[DocumentHandle]:
        """Poll the page until results show up or the wait limit passes.

        Returns the refreshed handle, or ``None`` when the limit was reached.
        With no limit configured this waits until someone solves the challenge
        in a headed browser.
        """
        max_wait = self.settings.challenge_max_wait_seconds
        poll = max(0.1, self.settings.challenge_poll_seconds)
        if max_wait is None:
            logger.warning("⏳ Waiting for the challenge to be solved (no time limit)")
        else:
            logger.warning(f"⏳ Waiting up to {max_wait:.0f}s for the challenge to be solved")

        started = time.monotonic()
        while True:
            if max_wait is not None and time.monotonic() - started >= max_wait:
                logger.error("❌ Challenge not solved in time, giving up on browser search")
                return None
            await asyncio.sleep(poll)
            try:
                handle = await session.refresh(handle)
            except FetchError as e:
                # The page is mid-navigation right after a solved challenge
                logger.debug(f"Challenge poll could not read the page, retrying: {e}")
                continue
            if self.has_results(handle.soup):
                logger.info("✅ Challenge cleared, results are visible")
                return handle

    def parse_results(self, soup: BeautifulSoup, base_url: str,
                      excluded_domains: List[str]) -> List[CandidateItem]:
        strategies = [
            named(sel, lambda s, sel=sel: self._results_for_selector(s, sel, base_url, excluded_domains))
            for sel in RESULT_CONTAINER_SELECTORS
        ]
        hit = first_success(strategies, soup)
        if hit:
            logger.debug(f"Search results matched by {hit.name}")
            return hit.value
        return []

    def _results_for_selector(self, soup: BeautifulSoup, selector: str, base_url: str,
                              excluded_domains: List[str]) -> List[CandidateItem]:
        results = []
        for container in soup.select(selector):
            item = self.parse_result(container, base_url, excluded_domains)
            if item:
                results.append(item)
        return dedupe_by_url(results)

    def parse_result(self, container: Tag, base_url: str,
                     excluded_domains: List[str]) -> Optional[CandidateItem]:
        title_el = None
        for selector in RESULT_TITLE_SELECTORS:
            title_el = container.select_one(selector)
            if title_el:
                break
        link_el = container.select_one('a[href]')
        if title_el is None or link_el is None:
            return None

        title = ' '.join(title_el.get_text(' ').split())
        url = unwrap_redirect(urljoin(base_url, link_el['href']))
        if not self._acceptable(url, title, excluded_domains):
            return None

        snippet = ''
        for selector in RESULT_SNIPPET_SELECTORS:
            snippet_el = container.select_one(selector)
            if snippet_el:
                snippet = ' '.join(snippet_el.get_text(' ').split())
                if snippet:
                    break
        return CandidateItem(title=title, url=url, preview=snippet)

    def collect_external_links(self, soup: BeautifulSoup, base_url: str,
                               excluded_domains: List[str]) -> List[CandidateItem]:
        """Every outbound anchor with a plausible title."""
        results = []
        for anchor in soup.select('a[href]'):
            url = unwrap_redirect(urljoin(base_url, anchor['href']))
            title = ' '.join(anchor.get_text(' ').split())
            if self._acceptable(url, title, excluded_domains):
                results.append(CandidateItem(title=title, url=url, preview=''))
        return dedupe_by_url(results)

    def _acceptable(self, url: str, title: str, excluded_domains: List[str]) -> bool:
        if not url.startswith('http'):
            return False
        if len(title) < MIN_RESULT_TITLE_LENGTH:
            return False
        return not is_excluded(url, excluded_domains)


def unwrap_redirect(url: str) -> str:
    """Turn ``/url?q=<target>`` tracking links into the target URL."""
    parsed = urlparse(url)
    if parsed.path == '/url':
        params = parse_qs(parsed.query)
        for key in ('q', 'url'):
            if params.get(key) and params[key][0].startswith('http'):
                return params[key][0]
    return url
