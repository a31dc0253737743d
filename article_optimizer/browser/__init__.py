"""Headless browser access."""

from .fetcher import BrowserSession, DocumentFetcher, DocumentHandle, WaitPolicy

__all__ = [
    'BrowserSession',
    'DocumentFetcher',
    'DocumentHandle',
    'WaitPolicy',
]
