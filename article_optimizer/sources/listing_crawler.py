"""Blog index crawler: find the last pagination page and list its posts."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag

from ..browser.fetcher import BrowserSession, DocumentFetcher, DocumentHandle
from ..config import Settings, get_settings
from ..core.cascade import first_success, named
from ..core.exceptions import FetchError
from ..extraction.extraction_utils import ExtractionUtils
from ..schemas import CandidateItem, LISTING_PREVIEW_PLACEHOLDER

logger = logging.getLogger(__name__)


@dataclass
class ListingSelectors:
    """Selector priority lists for a blog index page."""
    pagination: List[str] = field(default_factory=lambda: [
        'nav[aria-label="pagination"] a',
        '.pagination a',
        'ul.pagination li a',
        '[class*="pagination"] a',
        '[class*="page"] a[href*="page"]',
    ])
    cards: List[str] = field(default_factory=lambda: [
        'article',
        '.blog-card',
        '.post',
        '[class*="article"]',
        '[class*="blog"]',
        '[class*="post-"]',
        'div[class*="card"]',
        'a[href*="/blog"]',
    ])
    title: List[str] = field(default_factory=lambda: [
        'h1', 'h2', 'h3', '.title', '[class*="title"]', '[class*="heading"]',
    ])
    preview: List[str] = field(default_factory=lambda: [
        '.excerpt', '.description', '.content', 'p', '[class*="excerpt"]', '[class*="description"]',
    ])
    author: List[str] = field(default_factory=lambda: [
        '[class*="author"]', '.author', '[rel="author"]',
    ])
    date: List[str] = field(default_factory=lambda: [
        'time', '[datetime]', '.date', '[class*="date"]',
    ])


class ListingCrawler:
    """Discovers candidate posts on the oldest page of a paginated blog index."""

    def __init__(self, fetcher: DocumentFetcher, settings: Optional[Settings] = None,
                 selectors: Optional[ListingSelectors] = None, link_pattern: Optional[str] = None,
                 utils: Optional[ExtractionUtils] = None):
        self.fetcher = fetcher
        self.settings = settings or get_settings()
        self.selectors = selectors or ListingSelectors()
        self.link_pattern = link_pattern or self.settings.source_link_pattern
        self.utils = utils or ExtractionUtils()

    async def discover(self, index_url: str, target_count: int) -> List[CandidateItem]:
        """Return up to ``target_count`` candidates from the last index page."""
        async with self.fetcher.session() as session:
            return await self.discover_in_session(session, index_url, target_count)

    async def discover_in_session(self, session: BrowserSession, index_url: str,
                                  target_count: int) -> List[CandidateItem]:
        logger.info(f"📥 Loading blog index: {index_url}")
        handle = await session.load(index_url)

        last_page = self.find_last_page(handle.soup)
        if last_page > 1:
            logger.info(f"📄 Found pagination. Last page: {last_page}")
            handle = await self.navigate_to_page(session, index_url, last_page, handle)
        else:
            logger.info("📄 No pagination found, assuming single page")

        items = self.extract_items(handle.soup, handle.base_url)
        logger.info(f"🔎 Found {len(items)} articles on the page")

        if not items:
            logger.warning("No article cards matched, collecting blog links instead")
            items = self.collect_fallback_links(handle.soup, handle.base_url, index_url)
            logger.info(f"🔗 Found {len(items)} blog links")

        return items[:target_count]

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def find_last_page(self, soup: BeautifulSoup) -> int:
        """Highest numeric pagination label; non-numeric labels are ignored."""
        strategies = [named(sel, lambda s, sel=sel: s.select(sel)) for sel in self.selectors.pagination]
        # Prev/Next-only matches fall through to the next selector
        hit = first_success(strategies, soup, accept=lambda links: bool(_page_numbers(links)))
        if not hit:
            return 1
        return max(_page_numbers(hit.value))

    def page_url_candidates(self, index_url: str, page_number: int) -> List[str]:
        """Query-parameter style first, then path-segment style."""
        parsed = urlparse(index_url)
        query = dict(parse_qsl(parsed.query))
        query['page'] = str(page_number)
        query_style = urlunparse(parsed._replace(query=urlencode(query)))

        base_path = parsed.path.rstrip('/')
        path_style = urlunparse(parsed._replace(path=f"{base_path}/page/{page_number}/", query=''))
        return [query_style, path_style]

    async def navigate_to_page(self, session: BrowserSession, index_url: str, page_number: int,
                               first_page: DocumentHandle) -> DocumentHandle:
        """Land on ``page_number``; stay on the first page if no URL style works."""
        for url in self.page_url_candidates(index_url, page_number):
            try:
                logger.info(f"➡️ Navigating to page {page_number}: {url}")
                handle = await session.load(url)
            except FetchError as e:
                logger.warning(f"⚠️ Could not open {url}: {e}")
                continue
            if self.extract_items(handle.soup, handle.base_url):
                return handle
            logger.warning(f"⚠️ No articles on {url}, trying alternative URL format")

        logger.warning(f"Could not reach page {page_number}, continuing with first page")
        return first_page

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def extract_items(self, soup: BeautifulSoup, base_url: str) -> List[CandidateItem]:
        strategies = [
            named(sel, lambda s, sel=sel: self._items_for_selector(s, sel, base_url))
            for sel in self.selectors.cards
        ]
        hit = first_success(strategies, soup)
        if hit:
            logger.debug(f"Article cards matched by {hit.name}")
            return hit.value
        return []

    def _items_for_selector(self, soup: BeautifulSoup, selector: str, base_url: str) -> List[CandidateItem]:
        items = []
        for card in soup.select(selector):
            item = self.parse_card(card, base_url)
            if item:
                items.append(item)
        return self._dedupe(items)

    def parse_card(self, card: Tag, base_url: str) -> Optional[CandidateItem]:
        title = self._first_text(card, self.selectors.title)
        if not title and card.name == 'a':
            title = self.utils.normalize_whitespace(card.get_text(' '))

        link = card if card.name == 'a' and card.get('href') else card.select_one('a[href]')
        if link is None:
            link = card.find_parent('a', href=True)
        if not title or link is None:
            return None

        url = self.utils.canonical_url(urljoin(base_url, link['href']))
        if not url.startswith('http'):
            return None

        return CandidateItem(
            title=title,
            url=url,
            preview=self._first_text(card, self.selectors.preview) or LISTING_PREVIEW_PLACEHOLDER,
            author=self._first_text(card, self.selectors.author),
            published_date=self._card_date(card),
        )

    def _first_text(self, card: Tag, selectors: List[str]) -> Optional[str]:
        for selector in selectors:
            element = card.select_one(selector)
            if element is None:
                continue
            text = self.utils.normalize_whitespace(element.get_text(' '))
            if text:
                return text
        return None

    def _card_date(self, card: Tag) -> Optional[str]:
        for selector in self.selectors.date:
            element = card.select_one(selector)
            if element is None:
                continue
            value = element.get('datetime') or self.utils.normalize_whitespace(element.get_text(' '))
            if value:
                return value
        return None

    def collect_fallback_links(self, soup: BeautifulSoup, base_url: str, index_url: str) -> List[CandidateItem]:
        """Every same-domain anchor whose path matches the blog link pattern."""
        index_key = self.utils.canonical_url(index_url)
        items = []
        for anchor in soup.select('a[href]'):
            href = anchor['href']
            if self.link_pattern not in href:
                continue
            url = self.utils.canonical_url(urljoin(base_url, href))
            if not self.utils.is_same_domain(url, index_url) or url == index_key:
                continue
            if '/page/' in url or 'page=' in url:
                continue
            title = self.utils.normalize_whitespace(anchor.get_text(' ')) or 'Untitled'
            items.append(CandidateItem(title=title, url=url, preview=LISTING_PREVIEW_PLACEHOLDER))
        return self._dedupe(items)

    def _dedupe(self, items: List[CandidateItem]) -> List[CandidateItem]:
        seen = set()
        unique = []
        for item in items:
            if item.url in seen:
                continue
            seen.add(item.url)
            unique.append(item)
        return unique


def _page_numbers(links) -> List[int]:
    labels = (link.get_text(strip=True) for link in links)
    return [int(label) for label in labels if label.isdigit()]
