"""Google Custom Search JSON API strategy."""

import asyncio
import logging
from typing import List, Optional

from aiohttp import ClientError

from ..config import Settings, get_settings
from ..core.exceptions import SearchError
from ..core.http_client import get_http_client
from ..schemas import CandidateItem
from .base import SearchStrategy, dedupe_by_url, is_blog_like, is_excluded

logger = logging.getLogger(__name__)


class CustomSearchApiStrategy(SearchStrategy):
    """Structured results from the Custom Search API, filtered to blog-like pages."""

    name = "custom_search_api"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return self.settings.search_api_configured

    async def search(self, query: str, excluded_domains: List[str], max_results: int) -> List[CandidateItem]:
        if not self.configured:
            raise SearchError("Custom Search API credentials are not configured")

        data = await self._request(query)
        items = data.get('items') or []
        logger.info(f"🔍 Custom Search returned {len(items)} raw results")
        return self.filter_results(items, excluded_domains, max_results)

    async def _request(self, query: str) -> dict:
        params = {
            'key': self.settings.google_api_key.get_secret_value(),
            'cx': self.settings.google_search_engine_id,
            'q': query,
            'num': max(1, min(10, self.settings.search_api_raw_results)),
        }
        try:
            async with get_http_client() as client:
                response = await client.get(self.settings.google_search_api_endpoint, params=params)
                async with response:
                    if response.status == 200:
                        return await response.json()
                    error_text = await response.text()
                    raise SearchError(
                        f"Custom Search API error {response.status}: {error_text[:300]}"
                    )
        except (ClientError, asyncio.TimeoutError) as e:
            raise SearchError(f"Custom Search API request failed: {e}") from e

    def filter_results(self, items: List[dict], excluded_domains: List[str], max_results: int) -> List[CandidateItem]:
        results = []
        for item in items:
            url = item.get('link') or ''
            title = (item.get('title') or '').strip()
            if not url.startswith('http') or is_excluded(url, excluded_domains):
                continue
            if not is_blog_like(url, title):
                continue
            results.append(CandidateItem(title=title, url=url, preview=(item.get('snippet') or '').strip()))
        return dedupe_by_url(results)[:max_results]
