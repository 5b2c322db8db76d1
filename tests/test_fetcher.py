"""Tests for the HTTP page fetcher."""

import httpx
import pytest

from seoaudit.errors import FetchFailure
from seoaudit.fetcher import PageFetcher


def make_fetcher(handler, timeout=5.0):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return PageFetcher(timeout=timeout, client=client), client


class TestPageFetcher:
    """Test cases for PageFetcher."""

    @pytest.mark.asyncio
    async def test_successful_fetch(self):
        """Test body, status and lowercased headers are returned."""
        def handler(request):
            return httpx.Response(
                200,
                headers={"Content-Type": "text/html", "Strict-Transport-Security": "max-age=60"},
                text="<title>Hello</title>",
            )

        fetcher, client = make_fetcher(handler)
        async with client:
            page = await fetcher.fetch("https://example.com/page")

        assert page.status_code == 200
        assert page.text == "<title>Hello</title>"
        assert page.url == "https://example.com/page"
        assert page.headers["strict-transport-security"] == "max-age=60"

    @pytest.mark.asyncio
    async def test_redirect_reports_final_url(self):
        """Test redirects are followed and the final URL is kept."""
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://example.com/new"})
            return httpx.Response(200, text="moved")

        fetcher, client = make_fetcher(handler)
        async with client:
            page = await fetcher.fetch("https://example.com/old")

        assert page.url == "https://example.com/new"
        assert page.text == "moved"

    @pytest.mark.asyncio
    async def test_non_success_status_raises(self):
        """Test a 404 becomes a FetchFailure naming the status."""
        fetcher, client = make_fetcher(lambda request: httpx.Response(404, text="missing"))
        async with client:
            with pytest.raises(FetchFailure, match="HTTP 404") as excinfo:
                await fetcher.fetch("https://example.com/missing")

        assert excinfo.value.url == "https://example.com/missing"
        assert excinfo.value.kind == "fetch"

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        """Test a transport timeout becomes a FetchFailure."""
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        fetcher, client = make_fetcher(handler, timeout=3.0)
        async with client:
            with pytest.raises(FetchFailure, match="Timed out after 3s"):
                await fetcher.fetch("https://example.com/slow")

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        """Test a transport error becomes a FetchFailure."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher, client = make_fetcher(handler)
        async with client:
            with pytest.raises(FetchFailure, match="connection refused"):
                await fetcher.fetch("https://example.com/down")

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        """Test aclose leaves a caller-owned client open."""
        fetcher, client = make_fetcher(lambda request: httpx.Response(200, text="ok"))
        await fetcher.aclose()
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        """Test the fetcher closes a client it created."""
        async with PageFetcher(user_agent="TestAgent/1.0") as fetcher:
            assert fetcher._client.headers["User-Agent"] == "TestAgent/1.0"
        assert fetcher._client.is_closed
