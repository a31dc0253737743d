"""Shared pieces of the reference search strategies."""

from abc import ABC, abstractmethod
from typing import Iterable, List
from urllib.parse import urlparse

from ..schemas import CandidateItem

DEFAULT_EXCLUDED_DOMAINS = [
    'google.com',
    'youtube.com',
    'facebook.com',
    'twitter.com',
    'x.com',
    'linkedin.com',
    'instagram.com',
    'pinterest.com',
]

BLOG_URL_MARKERS = ('blog', 'article', 'post')
BLOG_TITLE_MARKERS = ('blog', 'article')

MIN_RESULT_TITLE_LENGTH = 10


def host_of(url: str) -> str:
    try:
        host = urlparse(url).netloc.lower()
    except ValueError:
        return ""
    host = host.split('@')[-1].split(':')[0]
    return host[4:] if host.startswith('www.') else host


def is_excluded(url: str, excluded_domains: Iterable[str]) -> bool:
    """True when the URL's host is, or is a subdomain of, an excluded domain."""
    host = host_of(url)
    if not host:
        return True
    for domain in excluded_domains:
        domain = domain.lower().lstrip('.')
        if domain.startswith('www.'):
            domain = domain[4:]
        if host == domain or host.endswith('.' + domain):
            return True
    return False


def is_blog_like(url: str, title: str) -> bool:
    url = (url or '').lower()
    title = (title or '').lower()
    return any(marker in url for marker in BLOG_URL_MARKERS) or any(marker in title for marker in BLOG_TITLE_MARKERS)


def dedupe_by_url(items: List[CandidateItem]) -> List[CandidateItem]:
    seen = set()
    unique = []
    for item in items:
        key = item.url.rstrip('/')
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


class SearchStrategy(ABC):
    """A way of turning a query into ranked candidate URLs."""

    name = "search"

    @abstractmethod
    async def search(self, query: str, excluded_domains: List[str], max_results: int) -> List[CandidateItem]:
        """Return at most ``max_results`` candidates.

        Raises:
            SearchError: the strategy could not run; the caller may fall back
        """
