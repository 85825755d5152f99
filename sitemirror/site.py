"""Site cloner: sequential page crawl followed by a concurrent asset phase."""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit

from .assets import materialize_assets
from .config import DEFAULT_OUTPUT_DIR, build_http_client
from .document import CrawlOptions, CrawlResult
from .errors import FetchError, InvalidURLError, UnsupportedContentType
from .fetch import PlainFetch, RenderedFetch, fetch_page_with_fallback
from .frontier import AssetRegistry, Frontier
from .paths import (
    canonicalize_url,
    is_http_url,
    normalize_page_url,
    origin_of,
    page_file_path,
)
from .rewriter import rewrite_document

LOGGER = logging.getLogger(__name__)


def validate_start_url(url: str) -> str:
    """Return the start URL in canonical form or raise InvalidURLError.

    Only the scheme, host case and default port are canonicalized; path and
    query are kept so the first request goes exactly where the caller asked.
    """
    candidate = (url or "").strip()
    try:
        parts = urlsplit(candidate)
        parts.port  # raises ValueError for a bad port
    except ValueError as exc:
        raise InvalidURLError(f"Invalid start URL {url!r}: {exc}", url=url) from exc
    if not is_http_url(candidate) or not parts.hostname:
        raise InvalidURLError(
            f"Invalid start URL {url!r}: expected an absolute http(s) URL", url=url
        )
    return canonicalize_url(candidate)


def resolve_output_dir(
    start_url: str, out_dir: Optional[Union[str, Path]] = None
) -> Path:
    """``<out_dir>/<hostname>``, relative paths anchored at the working dir."""
    base = Path(out_dir) if out_dir else Path(DEFAULT_OUTPUT_DIR)
    if not base.is_absolute():
        base = Path.cwd() / base
    return base / (urlsplit(start_url).hostname or "site")


def clear_directory(path: Path) -> None:
    """Empty ``path`` (creating it if needed) without removing it."""
    path.mkdir(parents=True, exist_ok=True)
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _write_page(target: Path, html: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(html, encoding="utf-8")


async def crawl_site_async(
    url: str,
    options: Optional[CrawlOptions] = None,
) -> CrawlResult:
    """
    Clone a website into a browsable offline copy.

    Pages reachable from ``url`` within its origin are fetched one at a time,
    rewritten to reference local files and written under
    ``<out_dir>/<hostname>``. All discovered assets are then downloaded
    concurrently.

    Args:
        url: Absolute http(s) URL to start from.
        options: CrawlOptions; defaults apply when omitted.

    Returns:
        CrawlResult with the output directory and the number of distinct
        assets discovered.

    Raises:
        InvalidURLError: ``url`` is not an absolute http(s) URL. Raised
            before any network or filesystem access.
    """
    options = options or CrawlOptions()
    start_url = validate_start_url(url)
    root_origin = origin_of(start_url)
    output_dir = resolve_output_dir(start_url, options.out_dir)

    clear_directory(output_dir)

    frontier = Frontier(options.max_pages)
    frontier.enqueue(start_url)
    if not urlsplit(start_url).query:
        # links back to the start page arrive in pretty form
        frontier.alias(normalize_page_url(start_url))
    registry = AssetRegistry()
    page_stats: Dict[str, Any] = {
        "pages_saved": 0,
        "pages_rendered": 0,
        "pages_skipped": 0,
        "pages_failed": 0,
    }

    LOGGER.info(
        "Cloning %s into %s (max_pages=%d, concurrency=%d)",
        start_url,
        output_dir,
        options.max_pages,
        options.concurrency,
    )

    async with build_http_client(options) as client:
        strategies: List[Any] = [PlainFetch(client, options.timeout)]
        if options.render_fallback:
            strategies.append(RenderedFetch(options))

        while True:
            current = frontier.next_url()
            if current is None:
                break

            try:
                page = await fetch_page_with_fallback(current, strategies)
            except UnsupportedContentType as exc:
                LOGGER.warning(
                    "Skipping non-HTML page %s (%s)", current, exc.content_type
                )
                page_stats["pages_skipped"] += 1
                continue
            except FetchError as exc:
                LOGGER.warning("Skipping page %s: %s", current, exc)
                page_stats["pages_failed"] += 1
                continue

            rewritten = rewrite_document(
                page.text, current, root_origin, base_url=page.url
            )
            registry.update(rewritten.assets)
            queued = frontier.extend(rewritten.pages)

            target = page_file_path(current, output_dir)
            try:
                _write_page(target, rewritten.html)
            except OSError as exc:
                LOGGER.warning("Cannot write page %s to %s: %s", current, target, exc)
                page_stats["pages_failed"] += 1
                continue

            page_stats["pages_saved"] += 1
            if page.rendered:
                page_stats["pages_rendered"] += 1
            LOGGER.info(
                "Saved page: %s (%d/%d, %d new links)",
                target,
                frontier.visited_count,
                options.max_pages,
                queued,
            )

        if len(frontier):
            LOGGER.info(
                "Reached page limit of %d; %d queued pages not visited",
                options.max_pages,
                len(frontier),
            )

        assets = registry.snapshot()
        asset_stats = await materialize_assets(
            client,
            assets,
            output_dir,
            root_origin,
            concurrency=options.concurrency,
            mirror_external_assets=options.mirror_external_assets,
            timeout=options.timeout,
        )

    stats = {
        "pages_visited": frontier.visited_count,
        **page_stats,
        "assets_discovered": len(assets),
        "assets_written": asset_stats.written,
        "assets_skipped": asset_stats.skipped,
        "assets_failed": asset_stats.failed,
    }

    return CrawlResult(
        message=f"Website [{url}] cloned successfully",
        path=str(output_dir),
        assets=len(assets),
        stats=stats,
    )


def crawl_site(
    url: str,
    options: Optional[CrawlOptions] = None,
) -> CrawlResult:
    """Synchronous wrapper for crawl_site_async."""
    return asyncio.run(crawl_site_async(url, options))
