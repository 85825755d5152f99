"""Fetch layer: plain HTTP retrieval with a headless-browser fallback.

Two strategies produce page markup:

- :class:`PlainFetch` issues a time-bounded GET through a shared
  ``httpx.AsyncClient``.
- :class:`RenderedFetch` drives a headless browser through crawl4ai, waits
  for the network to go idle and returns the rendered DOM. The browser is
  opened and closed inside a single call.

:func:`fetch_page_with_fallback` tries the strategies in order. A
:class:`~sitemirror.errors.FetchError` from one strategy moves on to the
next; :class:`~sitemirror.errors.UnsupportedContentType` is final because
the URL answered, just not with a document.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

import httpx
from crawl4ai import AsyncWebCrawler

from .config import (
    build_browser_config,
    build_render_run_config,
    is_document_content_type,
)
from .document import CrawlOptions, FetchedPage
from .errors import (
    FetchError,
    FetchHTTPError,
    FetchTimeout,
    NetworkError,
    RenderFailure,
    UnsupportedContentType,
)

LOGGER = logging.getLogger(__name__)


async def _get(
    client: httpx.AsyncClient, url: str, timeout: Optional[float] = None
) -> httpx.Response:
    # httpx timeouts are per phase; the deadline caps the whole request.
    deadline = timeout if timeout is not None else client.timeout.read
    try:
        response = await asyncio.wait_for(client.get(url), deadline)
        response.raise_for_status()
    except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
        raise FetchTimeout(f"Timed out fetching {url}", url=url) from exc
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        raise FetchHTTPError(
            f"HTTP {status} for {url}", url=url, status_code=status
        ) from exc
    except httpx.RequestError as exc:
        raise NetworkError(f"Request failed for {url}: {exc}", url=url) from exc
    return response


async def fetch_text(
    client: httpx.AsyncClient, url: str, timeout: Optional[float] = None
) -> FetchedPage:
    """GET ``url`` and return its decoded body and declared content type.

    ``timeout`` is a total deadline in seconds for the request and its body;
    it defaults to the client's read timeout.

    Raises:
        FetchTimeout: The request did not complete within the deadline.
        FetchHTTPError: Non-2xx response.
        NetworkError: Any other transport failure.
    """
    response = await _get(client, url, timeout)
    return FetchedPage(
        url=str(response.url),
        text=response.text,
        content_type=response.headers.get("content-type", ""),
    )


async def fetch_binary(
    client: httpx.AsyncClient, url: str, timeout: Optional[float] = None
) -> bytes:
    """GET ``url`` and return the raw body; same deadline and errors as fetch_text."""
    response = await _get(client, url, timeout)
    return response.content


async def render_page(url: str, options: Optional[CrawlOptions] = None) -> str:
    """Render ``url`` in a headless browser and return the resulting markup.

    The browser lives only for this call and is closed before returning,
    whether or not rendering succeeded.

    Raises:
        RenderFailure: The browser failed or returned no markup.
    """
    options = options or CrawlOptions()
    LOGGER.info("Rendering %s in headless browser", url)
    try:
        async with AsyncWebCrawler(config=build_browser_config(options)) as crawler:
            container = await crawler.arun(
                url=url, config=build_render_run_config(options)
            )
    except Exception as exc:
        raise RenderFailure(f"Browser failed for {url}: {exc}", url=url) from exc

    try:
        result = container[0]
    except (IndexError, TypeError):
        result = container

    if result is None or not getattr(result, "success", False):
        reason = getattr(result, "error_message", None) or "no result"
        raise RenderFailure(f"Rendering {url} failed: {reason}", url=url)

    html = getattr(result, "html", None) or ""
    if not html.strip():
        raise RenderFailure(f"Rendering {url} returned empty markup", url=url)
    return html


class PlainFetch:
    """Fetch a page over HTTP and insist on an HTML content type."""

    name = "plain"

    def __init__(self, client: httpx.AsyncClient, timeout: Optional[float] = None):
        self.client = client
        self.timeout = timeout

    async def fetch_page(self, url: str) -> FetchedPage:
        page = await fetch_text(self.client, url, self.timeout)
        if not is_document_content_type(page.content_type):
            declared = page.content_type or "no content type"
            raise UnsupportedContentType(
                f"Not an HTML document: {url} ({declared})",
                url=url,
                content_type=page.content_type,
            )
        return page


class RenderedFetch:
    """Fetch a page through the headless browser."""

    name = "rendered"

    def __init__(self, options: Optional[CrawlOptions] = None):
        self.options = options

    async def fetch_page(self, url: str) -> FetchedPage:
        html = await render_page(url, self.options)
        return FetchedPage(url=url, text=html, content_type="text/html", rendered=True)


async def fetch_page_with_fallback(url: str, strategies: Sequence) -> FetchedPage:
    """Return the first successful strategy's page.

    Raises the last strategy's :class:`FetchError` when all of them fail, or
    :class:`UnsupportedContentType` as soon as a strategy reports one.
    """
    if not strategies:
        raise ValueError("at least one fetch strategy is required")

    last_error: Optional[FetchError] = None
    for strategy in strategies:
        try:
            return await strategy.fetch_page(url)
        except UnsupportedContentType:
            raise
        except FetchError as exc:
            last_error = exc
            LOGGER.warning(
                "Fetching page %s with %s strategy failed: %s",
                url,
                getattr(strategy, "name", type(strategy).__name__),
                exc,
            )
    assert last_error is not None
    raise last_error
