"""Tests for sitemirror.fetch module."""

from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from sitemirror.document import CrawlOptions, FetchedPage
from sitemirror.errors import (
    FetchHTTPError,
    FetchTimeout,
    NetworkError,
    RenderFailure,
    UnsupportedContentType,
)
from sitemirror.fetch import (
    PlainFetch,
    RenderedFetch,
    fetch_binary,
    fetch_page_with_fallback,
    fetch_text,
    render_page,
)

URL = "https://example.test/"


def _timeout(request: httpx.Request) -> Exception:
    return httpx.ReadTimeout("timed out", request=request)


def _refused(request: httpx.Request) -> Exception:
    return httpx.ConnectError("connection refused", request=request)


class TestFetchText:
    @pytest.mark.asyncio
    async def test_success(self, fake_site):
        fake_site.page(URL, "<h1>Hello</h1>")
        async with fake_site.client() as client:
            page = await fetch_text(client, URL)
        assert page.text == "<h1>Hello</h1>"
        assert page.content_type.startswith("text/html")
        assert page.rendered is False

    @pytest.mark.asyncio
    async def test_http_error(self, fake_site):
        async with fake_site.client() as client:
            with pytest.raises(FetchHTTPError) as excinfo:
                await fetch_text(client, URL + "missing")
        assert excinfo.value.status_code == 404
        assert excinfo.value.url == URL + "missing"

    @pytest.mark.asyncio
    async def test_server_error(self, fake_site):
        fake_site.page(URL, "oops", status=503)
        async with fake_site.client() as client:
            with pytest.raises(FetchHTTPError) as excinfo:
                await fetch_text(client, URL)
        assert excinfo.value.status_code == 503

    @pytest.mark.asyncio
    async def test_timeout(self, fake_site):
        fake_site.fail(URL, _timeout)
        async with fake_site.client() as client:
            with pytest.raises(FetchTimeout):
                await fetch_text(client, URL)

    @pytest.mark.asyncio
    async def test_network_error(self, fake_site):
        fake_site.fail(URL, _refused)
        async with fake_site.client() as client:
            with pytest.raises(NetworkError):
                await fetch_text(client, URL)


def _dripping_client(chunks: int = 20, delay: float = 0.05, timeout=5.0):
    """Client whose responses arrive one byte at a time, each within the
    per-phase read timeout."""

    async def drip():
        for _ in range(chunks):
            await asyncio.sleep(delay)
            yield b"x"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, headers={"content-type": "text/html"}, content=drip()
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=timeout)


class TestTotalDeadline:
    @pytest.mark.asyncio
    async def test_slow_body_hits_deadline(self):
        started = time.monotonic()
        async with _dripping_client() as client:
            with pytest.raises(FetchTimeout):
                await fetch_text(client, URL, timeout=0.2)
        assert time.monotonic() - started < 0.9

    @pytest.mark.asyncio
    async def test_binary_slow_body_hits_deadline(self):
        async with _dripping_client() as client:
            with pytest.raises(FetchTimeout):
                await fetch_binary(client, URL + "big.bin", timeout=0.2)

    @pytest.mark.asyncio
    async def test_deadline_defaults_to_client_timeout(self):
        async with _dripping_client(timeout=0.2) as client:
            with pytest.raises(FetchTimeout):
                await fetch_text(client, URL)

    @pytest.mark.asyncio
    async def test_plain_fetch_uses_deadline(self):
        async with _dripping_client() as client:
            with pytest.raises(FetchTimeout):
                await PlainFetch(client, timeout=0.2).fetch_page(URL)

    @pytest.mark.asyncio
    async def test_fast_body_within_deadline(self):
        async with _dripping_client(chunks=3, delay=0.01) as client:
            page = await fetch_text(client, URL, timeout=2.0)
        assert page.text == "xxx"


class TestFetchBinary:
    @pytest.mark.asyncio
    async def test_returns_raw_bytes(self, fake_site):
        fake_site.asset(URL + "logo.png", b"\x89PNG\r\n")
        async with fake_site.client() as client:
            assert await fetch_binary(client, URL + "logo.png") == b"\x89PNG\r\n"

    @pytest.mark.asyncio
    async def test_http_error(self, fake_site):
        async with fake_site.client() as client:
            with pytest.raises(FetchHTTPError):
                await fetch_binary(client, URL + "missing.png")


class TestPlainFetch:
    @pytest.mark.asyncio
    async def test_html(self, fake_site):
        fake_site.page(URL, "<p>ok</p>")
        async with fake_site.client() as client:
            page = await PlainFetch(client).fetch_page(URL)
        assert page.text == "<p>ok</p>"

    @pytest.mark.asyncio
    async def test_xhtml_accepted(self, fake_site):
        fake_site.asset(URL, "<p>ok</p>", content_type="application/xhtml+xml")
        async with fake_site.client() as client:
            page = await PlainFetch(client).fetch_page(URL)
        assert page.text == "<p>ok</p>"

    @pytest.mark.asyncio
    async def test_non_html_rejected(self, fake_site):
        fake_site.asset(URL + "report.pdf", b"%PDF-1.7", content_type="application/pdf")
        async with fake_site.client() as client:
            with pytest.raises(UnsupportedContentType) as excinfo:
                await PlainFetch(client).fetch_page(URL + "report.pdf")
        assert excinfo.value.content_type == "application/pdf"


class TestRenderPage:
    @pytest.mark.asyncio
    async def test_success_closes_browser(self, fake_browser):
        fake_browser.pages[URL] = "<html><body>rendered</body></html>"
        html = await render_page(URL, CrawlOptions())
        assert "rendered" in html
        assert fake_browser.rendered == [URL]
        assert fake_browser.opened == fake_browser.closed == 1

    @pytest.mark.asyncio
    async def test_unsuccessful_result(self, fake_browser):
        with pytest.raises(RenderFailure, match="net::ERR_FAILED"):
            await render_page(URL)
        assert fake_browser.closed == 1

    @pytest.mark.asyncio
    async def test_empty_markup(self, fake_browser):
        fake_browser.pages[URL] = "   "
        with pytest.raises(RenderFailure):
            await render_page(URL)

    @pytest.mark.asyncio
    async def test_browser_crash_still_closes(self, fake_browser):
        fake_browser.crash = True
        with pytest.raises(RenderFailure, match="browser crashed"):
            await render_page(URL)
        assert fake_browser.opened == fake_browser.closed == 1

    @pytest.mark.asyncio
    async def test_rendered_fetch_marks_page(self, fake_browser):
        fake_browser.pages[URL] = "<p>js</p>"
        page = await RenderedFetch(CrawlOptions()).fetch_page(URL)
        assert page.rendered is True
        assert page.text == "<p>js</p>"


class _Strategy:
    def __init__(self, name, outcome):
        self.name = name
        self.outcome = outcome
        self.calls = 0

    async def fetch_page(self, url):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return FetchedPage(url=url, text=self.outcome)


class TestFetchPageWithFallback:
    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        first = _Strategy("plain", "<p>plain</p>")
        second = _Strategy("rendered", "<p>rendered</p>")
        page = await fetch_page_with_fallback(URL, [first, second])
        assert page.text == "<p>plain</p>"
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_after_fetch_error(self, caplog):
        first = _Strategy("plain", NetworkError("refused", url=URL))
        second = _Strategy("rendered", "<p>rendered</p>")
        page = await fetch_page_with_fallback(URL, [first, second])
        assert page.text == "<p>rendered</p>"
        assert "plain strategy failed" in caplog.text

    @pytest.mark.asyncio
    async def test_all_fail_raises_last(self):
        first = _Strategy("plain", FetchTimeout("slow", url=URL))
        second = _Strategy("rendered", RenderFailure("blank", url=URL))
        with pytest.raises(RenderFailure):
            await fetch_page_with_fallback(URL, [first, second])

    @pytest.mark.asyncio
    async def test_unsupported_content_type_is_final(self):
        first = _Strategy("plain", UnsupportedContentType("pdf", url=URL))
        second = _Strategy("rendered", "<p>rendered</p>")
        with pytest.raises(UnsupportedContentType):
            await fetch_page_with_fallback(URL, [first, second])
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_requires_a_strategy(self):
        with pytest.raises(ValueError):
            await fetch_page_with_fallback(URL, [])
