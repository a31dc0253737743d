"""Headless browser document fetcher.

Every component that reads a web page goes through :class:`DocumentFetcher`.
A fetcher hands out :class:`BrowserSession` objects from an async context
manager; leaving the ``async with`` block always tears down the page, the
browser context, the browser process and the Playwright driver, whatever
happened inside.
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional, Union

from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ..config import Settings, get_settings
from ..core.exceptions import BrowserLaunchError, FetchError

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ['--no-sandbox', '--disable-setuid-sandbox', '--disable-dev-shm-usage']
STEALTH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--disable-features=IsolateOrigins,site-per-process',
]
STEALTH_HEADERS = {
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
}
HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"
BLOCKED_RESOURCE_TYPES = ("image", "media", "font")

_session_slots: Optional[asyncio.Semaphore] = None


def _get_session_slots(limit: int) -> asyncio.Semaphore:
    """Process-wide cap on concurrently running browser processes."""
    global _session_slots
    if _session_slots is None:
        _session_slots = asyncio.Semaphore(max(1, limit))
    return _session_slots


class WaitPolicy(str, Enum):
    """When navigation counts as finished."""
    LOAD = "load"
    DOM_CONTENT_LOADED = "domcontentloaded"
    NETWORK_IDLE = "networkidle"


@dataclass
class DocumentHandle:
    """A loaded document: its HTML snapshot plus the live page, if any."""
    url: str
    html: str
    final_url: Optional[str] = None
    page: Optional[Page] = field(default=None, repr=False)
    _soup: Optional[BeautifulSoup] = field(default=None, repr=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or "", 'html.parser')
        return self._soup

    @property
    def base_url(self) -> str:
        return self.final_url or self.url

    def body_text(self) -> str:
        body = self.soup.body or self.soup
        return body.get_text(separator='\n', strip=True)


ExtractionFn = Union[str, Callable[[BeautifulSoup], Any]]


class BrowserSession:
    """One browser process with a single reusable page."""

    def __init__(self, context: BrowserContext, page: Page, settings: Settings):
        self.context = context
        self.page = page
        self.settings = settings

    async def load(
        self,
        url: str,
        wait_policy: WaitPolicy = WaitPolicy.NETWORK_IDLE,
        timeout_ms: Optional[int] = None,
        settle: bool = True,
    ) -> DocumentHandle:
        """Navigate the session page to ``url`` and snapshot the DOM.

        Raises:
            FetchError: navigation failed or timed out
        """
        timeout_ms = timeout_ms or self.settings.browser_timeout_ms
        logger.info(f"🌐 Loading {url} (wait={wait_policy.value}, timeout={timeout_ms}ms)")
        try:
            response = await self.page.goto(url, wait_until=wait_policy.value, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise FetchError(f"Navigation timed out after {timeout_ms}ms: {url}", url=url) from e
        except PlaywrightError as e:
            raise FetchError(f"Navigation failed for {url}: {e}", url=url) from e

        if response is not None and response.status >= 400:
            logger.warning(f"⚠️ HTTP {response.status} for {url}")

        if settle:
            await self.settle()

        return await self.snapshot(url)

    async def settle(self):
        """Pause for a randomized, human-looking interval."""
        low = self.settings.browser_settle_min_ms
        high = max(low, self.settings.browser_settle_max_ms)
        await asyncio.sleep(random.uniform(low, high) / 1000)

    async def snapshot(self, url: Optional[str] = None) -> DocumentHandle:
        """Capture the current DOM of the session page."""
        try:
            html = await self.page.content()
        except PlaywrightError as e:
            raise FetchError(f"Could not read page content: {e}", url=url) from e
        return DocumentHandle(url=url or self.page.url, html=html, final_url=self.page.url, page=self.page)

    async def refresh(self, handle: DocumentHandle) -> DocumentHandle:
        """Re-read the DOM behind ``handle`` without navigating."""
        return await self.snapshot(handle.url)

    async def evaluate(self, handle: DocumentHandle, extraction_fn: ExtractionFn) -> Any:
        """Run extraction logic against a document.

        ``extraction_fn`` is either a JavaScript expression evaluated in the
        live page or a Python callable receiving the parsed DOM. Errors are
        logged and yield ``None``.
        """
        try:
            if isinstance(extraction_fn, str):
                page = handle.page or self.page
                return await page.evaluate(extraction_fn)
            return extraction_fn(handle.soup)
        except Exception as e:
            logger.warning(f"⚠️ Evaluation failed on {handle.url}: {e}")
            return None

    async def title(self, handle: DocumentHandle) -> str:
        page = handle.page or self.page
        try:
            return await page.title()
        except PlaywrightError:
            title = handle.soup.title
            return title.get_text(strip=True) if title else ""

    async def screenshot(self, handle: DocumentHandle, path: Union[str, Path]) -> Optional[Path]:
        """Save a full-page screenshot for diagnostics."""
        page = handle.page or self.page
        target = Path(path)
        try:
            await page.screenshot(path=str(target), full_page=True)
            logger.info(f"📸 Screenshot saved: {target}")
            return target
        except PlaywrightError as e:
            logger.warning(f"⚠️ Screenshot failed: {e}")
            return None


class DocumentFetcher:
    """Launches sandboxed Chromium sessions with realistic fingerprints."""

    def __init__(self, settings: Optional[Settings] = None, stealth: bool = False,
                 block_media: bool = True):
        self.settings = settings or get_settings()
        self.stealth = stealth
        self.block_media = block_media

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """Open a browser session; the process is closed on every exit path.

        Raises:
            BrowserLaunchError: the browser executable could not be started
        """
        async with _get_session_slots(self.settings.max_browser_sessions):
            try:
                playwright = await async_playwright().start()
            except (PlaywrightError, OSError) as e:
                raise BrowserLaunchError(f"Could not start the Playwright driver: {e}") from e
            browser: Optional[Browser] = None
            context: Optional[BrowserContext] = None
            try:
                args = LAUNCH_ARGS + (STEALTH_ARGS if self.stealth else [])
                try:
                    browser = await playwright.chromium.launch(headless=self.settings.browser_headless, args=args)
                except PlaywrightError as e:
                    raise BrowserLaunchError(f"Could not launch Chromium: {e}") from e
                logger.debug("🚀 Browser launched")

                context = await browser.new_context(
                    viewport={'width': self.settings.viewport_width, 'height': self.settings.viewport_height},
                    user_agent=self.settings.browser_user_agent,
                    extra_http_headers=STEALTH_HEADERS if self.stealth else None,
                )
                if self.stealth:
                    await context.add_init_script(HIDE_WEBDRIVER_SCRIPT)

                page = await context.new_page()
                if self.block_media:
                    await page.route("**/*", _block_heavy_resources)

                yield BrowserSession(context, page, self.settings)
            finally:
                await _close_quietly(context, browser, playwright)

    async def fetch(self, url: str, wait_policy: WaitPolicy = WaitPolicy.NETWORK_IDLE,
                    timeout_ms: Optional[int] = None) -> DocumentHandle:
        """One-shot load: open a session, snapshot ``url``, close everything."""
        async with self.session() as session:
            handle = await session.load(url, wait_policy=wait_policy, timeout_ms=timeout_ms)
        # The live page is gone once the session closes
        handle.page = None
        return handle


async def _block_heavy_resources(route):
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


async def _close_quietly(context, browser, playwright):
    for closer, label in ((context, "context"), (browser, "browser")):
        if closer is None:
            continue
        try:
            await closer.close()
        except PlaywrightError as e:
            logger.warning(f"⚠️ Failed to close {label}: {e}")
    try:
        await playwright.stop()
    except PlaywrightError as e:
        logger.warning(f"⚠️ Failed to stop Playwright: {e}")
    logger.debug("🔒 Browser closed")
