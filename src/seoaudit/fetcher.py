"""Page fetching over HTTP."""

import logging
import time
from typing import Optional

import httpx

from seoaudit.constants import DEFAULT_FETCH_TIMEOUT_SECONDS, DEFAULT_USER_AGENT
from seoaudit.errors import FetchFailure
from seoaudit.models import FetchedPage

logger = logging.getLogger(__name__)


class PageFetcher:
    """Fetch raw page markup with a bounded timeout.

    Redirects are followed. Non-2xx responses, timeouts and transport errors
    all raise FetchFailure; there is no retry.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )

    async def fetch(self, url: str) -> FetchedPage:
        """Fetch a page.

        Args:
            url: Absolute page URL

        Returns:
            FetchedPage with status, headers and body text

        Raises:
            FetchFailure: On timeout, transport error or non-2xx status
        """
        start = time.monotonic()
        try:
            response = await self._client.get(url, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise FetchFailure(url, f"Timed out after {self.timeout:.0f}s") from e
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            # InvalidURL and ValueError cover URLs httpx cannot build a request for
            raise FetchFailure(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise FetchFailure(url, f"HTTP {response.status_code}")

        elapsed = time.monotonic() - start
        logger.debug(f"Fetched {url} ({response.status_code}, {len(response.text)} chars, {elapsed:.2f}s)")
        return FetchedPage(
            url=str(response.url),
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            text=response.text,
            elapsed=elapsed,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "PageFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
