"""Article sources."""

from .listing_crawler import ListingCrawler, ListingSelectors

__all__ = ['ListingCrawler', 'ListingSelectors']
