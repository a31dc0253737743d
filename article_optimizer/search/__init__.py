"""Reference search strategies."""

from .api_strategy import CustomSearchApiStrategy
from .base import DEFAULT_EXCLUDED_DOMAINS, SearchStrategy, is_blog_like, is_excluded
from .browser_strategy import BrowserSearchStrategy
from .reference_search import ReferenceSearch

__all__ = [
    'CustomSearchApiStrategy',
    'BrowserSearchStrategy',
    'ReferenceSearch',
    'SearchStrategy',
    'DEFAULT_EXCLUDED_DOMAINS',
    'is_blog_like',
    'is_excluded',
]
