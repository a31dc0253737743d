"""Async HTTP client with connection pooling and rate limiting."""

import asyncio
import time
from typing import Dict, Optional, Any
from contextlib import asynccontextmanager

import aiohttp
from aiohttp import ClientTimeout, ClientError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..config import settings


class RateLimiter:
    """Rate limiter for API calls."""

    def __init__(self, max_calls: int, time_window: float = 1.0):
        self.max_calls = max(1, max_calls)
        self.time_window = time_window
        self.calls = []
        self.lock = asyncio.Lock()

    async def acquire(self):
        """Acquire permission to make a call."""
        while True:
            async with self.lock:
                now = time.time()
                # Remove old calls outside the time window
                self.calls = [call_time for call_time in self.calls if now - call_time < self.time_window]

                if len(self.calls) < self.max_calls:
                    self.calls.append(now)
                    return

                sleep_time = self.time_window - (now - self.calls[0])

            if sleep_time > 0:
                await asyncio.sleep(sleep_time)


class AsyncHTTPClient:
    """Async HTTP client with rate limiting and connection pooling."""

    def __init__(self):
        self.session: Optional[aiohttp.ClientSession] = None
        self.rate_limiter = RateLimiter(max_calls=settings.api_rate_limit, time_window=1.0)
        self.timeout = ClientTimeout(total=30, connect=10)

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self):
        """Start the HTTP client session."""
        if self.session is None or self.session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,  # Total connection pool size
                limit_per_host=5,  # Connections per host
                ttl_dns_cache=300,  # DNS cache TTL
            )
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=self.timeout,
                headers={
                    'User-Agent': 'article-optimizer/1.0.0',
                }
            )

    async def close(self):
        """Close the HTTP client session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((ClientError, asyncio.TimeoutError)),
        reraise=True
    )
    async def get(self, url: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> aiohttp.ClientResponse:
        """Make GET request with retries."""
        if not self.session or self.session.closed:
            await self.start()

        await self.rate_limiter.acquire()

        return await self.session.get(url, headers=headers, **kwargs)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type((ClientError, asyncio.TimeoutError)),
        reraise=True
    )
    async def post(self, url: str, data: Any = None, json: Any = None,
                   headers: Optional[Dict[str, str]] = None, **kwargs) -> aiohttp.ClientResponse:
        """Make POST request with retries."""
        if not self.session or self.session.closed:
            await self.start()

        # Apply rate limiting for POST requests (usually API calls)
        await self.rate_limiter.acquire()

        return await self.session.post(url, data=data, json=json, headers=headers, **kwargs)


# Global HTTP client instance
http_client = None


@asynccontextmanager
async def get_http_client():
    """Get HTTP client context manager."""
    global http_client

    if http_client is None:
        http_client = AsyncHTTPClient()

    if not http_client.session or http_client.session.closed:
        await http_client.start()
    try:
        yield http_client
    finally:
        # Don't close here - let it be reused
        pass


async def close_http_client():
    """Close the shared HTTP client session."""
    global http_client

    if http_client is not None:
        await http_client.close()
        http_client = None
