"""Reference search with ordered strategy fallback."""

import logging
from typing import List, Optional, Sequence

from ..config import Settings, get_settings
from ..core.cascade import first_success_async, named
from ..core.circuit_breaker import CircuitBreaker, CircuitBreakerError, search_api_breaker
from ..core.exceptions import FetchError, SearchError
from ..extraction.extraction_utils import ExtractionUtils
from ..schemas import CandidateItem
from .api_strategy import CustomSearchApiStrategy
from .base import DEFAULT_EXCLUDED_DOMAINS, SearchStrategy
from .browser_strategy import BrowserSearchStrategy

logger = logging.getLogger(__name__)

# Failures that hand over to the next strategy; anything else (BrowserLaunchError) ends the run
RECOVERABLE_ERRORS = (SearchError, FetchError, CircuitBreakerError)


class ReferenceSearch:
    """
    Finds competing articles for a title.

    The structured API is tried first when credentials exist and its circuit
    is closed; the browser strategy runs when the API is unavailable, fails
    or returns nothing.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 strategies: Optional[Sequence[SearchStrategy]] = None,
                 breaker: Optional[CircuitBreaker] = None):
        self.settings = settings or get_settings()
        self.breaker = breaker or search_api_breaker
        if strategies is None:
            strategies = [CustomSearchApiStrategy(self.settings), BrowserSearchStrategy(settings=self.settings)]
        self.strategies = list(strategies)

    def default_excluded_domains(self) -> List[str]:
        """Own source, search engines and social networks, plus configured extras."""
        domains = [ExtractionUtils().extract_domain(self.settings.source_index_url)]
        domains.extend(DEFAULT_EXCLUDED_DOMAINS)
        domains.extend(self.settings.get_excluded_domains_list())
        return [d for i, d in enumerate(domains) if d and d not in domains[:i]]

    def _available(self, strategy: SearchStrategy) -> bool:
        if isinstance(strategy, CustomSearchApiStrategy):
            return strategy.configured and self.breaker.is_available()
        return True

    def _runner(self, strategy: SearchStrategy, excluded: List[str], max_results: int):
        if isinstance(strategy, CustomSearchApiStrategy):
            async def run(query):
                return await self.breaker.call(strategy.search, query, excluded, max_results)
        else:
            async def run(query):
                return await strategy.search(query, excluded, max_results)
        return named(strategy.name, run)

    async def search(self, query: str, excluded_domains: Optional[List[str]] = None,
                     max_results: Optional[int] = None) -> List[CandidateItem]:
        """Up to ``max_results`` candidates; empty when every strategy came up dry."""
        excluded = excluded_domains if excluded_domains is not None else self.default_excluded_domains()
        max_results = max_results or self.settings.search_max_results

        runners = [
            self._runner(strategy, excluded, max_results)
            for strategy in self.strategies
            if self._available(strategy)
        ]
        logger.info(f"🔍 Searching references for: {query}")
        hit = await first_success_async(runners, query, swallow=RECOVERABLE_ERRORS)
        if not hit:
            logger.warning(f"⚠️ No reference candidates found for: {query}")
            return []

        logger.info(f"✅ {len(hit.value)} candidates via {hit.name}")
        return hit.value[:max_results]
