"""Shared fixtures: an HTML-serving fake browser, a scripted AI client and a temp SQLite store."""

from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import pytest

from article_optimizer.browser.fetcher import DocumentHandle, WaitPolicy
from article_optimizer.config import Settings
from article_optimizer.core.exceptions import APIError, FetchError
from article_optimizer.database import create_engine_for, create_session_factory, init_db
from article_optimizer.services.article_store import ArticleStore


class FakeSession:
    """Stands in for BrowserSession: serves canned HTML by URL."""

    def __init__(self, pages: Dict[str, str], default: Optional[str] = None,
                 refreshes: Optional[List] = None):
        """``refreshes`` holds HTML strings, or exceptions to raise on that refresh."""
        self.pages = pages
        self.default = default
        self.refreshes = list(refreshes or [])
        self.loaded: List[str] = []
        self.refresh_count = 0

    async def load(self, url, wait_policy=WaitPolicy.NETWORK_IDLE, timeout_ms=None, settle=True):
        self.loaded.append(url)
        html = self.pages.get(url, self.default)
        if html is None:
            raise FetchError(f"Navigation failed for {url}", url=url)
        return DocumentHandle(url=url, html=html, final_url=url)

    async def refresh(self, handle):
        self.refresh_count += 1
        html = self.refreshes.pop(0) if self.refreshes else handle.html
        if isinstance(html, Exception):
            raise html
        return DocumentHandle(url=handle.url, html=html, final_url=handle.final_url)

    async def snapshot(self, url=None):
        return DocumentHandle(url=url, html=self.pages.get(url, self.default) or "", final_url=url)


class FakeFetcher:
    """Stands in for DocumentFetcher; every session shares the same page map."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, default: Optional[str] = None,
                 refreshes: Optional[List[str]] = None, launch_error: Optional[Exception] = None):
        self.pages = pages if pages is not None else {}
        self.default = default
        self.refreshes = refreshes
        self.launch_error = launch_error
        self.sessions: List[FakeSession] = []
        self.opened = 0
        self.closed = 0

    @property
    def loaded(self) -> List[str]:
        return [url for session in self.sessions for url in session.loaded]

    @asynccontextmanager
    async def session(self):
        if self.launch_error is not None:
            raise self.launch_error
        session = FakeSession(self.pages, self.default, self.refreshes)
        self.sessions.append(session)
        self.opened += 1
        try:
            yield session
        finally:
            self.closed += 1

    async def fetch(self, url, wait_policy=WaitPolicy.NETWORK_IDLE, timeout_ms=None):
        async with self.session() as session:
            return await session.load(url, wait_policy=wait_policy, timeout_ms=timeout_ms)


class FakeAIClient:
    """Returns a canned completion and remembers the prompts it was given."""

    model = "fake-model"

    def __init__(self, response: Optional[str] = None, fail: bool = False, fail_on: tuple = ()):
        self.response = response
        self.fail = fail
        self.fail_on = fail_on
        self.prompts: List[str] = []

    async def generate_text(self, prompt, max_output_tokens=None, temperature=None):
        self.prompts.append(prompt)
        if self.fail or any(marker in prompt for marker in self.fail_on):
            raise APIError("Gemini API error: 503", status_code=503)
        if self.response is not None:
            return self.response
        title = prompt.split("Title: ", 1)[1].split("\n", 1)[0] if "Title: " in prompt else "Article"
        return f"# {title}\n\n## Overview\n\nA rewritten and expanded article body."


class FakeSearch:
    """ReferenceSearch stand-in returning fixed candidates."""

    def __init__(self, results=None):
        self.results = list(results or [])
        self.queries: List[str] = []

    async def search(self, query, excluded_domains=None, max_results=None):
        self.queries.append(query)
        return list(self.results)


def long_paragraphs(topic: str, count: int = 4) -> str:
    sentence = f"This paragraph explains {topic} in enough detail to count as real article text."
    return "".join(f"<p>{sentence} Part {i}.</p>" for i in range(count))


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        google_api_key=None,
        google_search_engine_id=None,
        gemini_api_key=None,
        crawl_item_delay=0,
        reference_delay=0,
        article_delay=0,
        browser_settle_min_ms=0,
        browser_settle_max_ms=0,
        challenge_poll_seconds=0.01,
        challenge_max_wait_seconds=None,
        max_workers=2,
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'articles.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return ArticleStore(create_session_factory(engine))


@pytest.fixture
def ai_client():
    return FakeAIClient()
