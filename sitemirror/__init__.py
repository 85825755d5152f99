"""Clone a live website into a self-contained, browsable offline copy.

Pages reachable from a start URL within its origin are crawled one at a
time, their resource references and hyperlinks are rewritten to local
paths, and every referenced script, stylesheet and image is mirrored to
disk with bounded concurrency. Pages that fail plain HTTP retrieval are
retried in a headless browser.

Example usage:

    from sitemirror import CrawlOptions, crawl_site, crawl_site_async

    result = await crawl_site_async(
        "https://example.com",
        CrawlOptions(out_dir="./cloned-site", max_pages=20),
    )
    print(result.message, result.path, result.assets)

    # Synchronous
    result = crawl_site("https://example.com")
"""

from __future__ import annotations

from .document import CrawlOptions, CrawlResult, FetchedPage, RewrittenDocument
from .errors import (
    AssetWriteError,
    FetchError,
    FetchHTTPError,
    FetchTimeout,
    InvalidURLError,
    NetworkError,
    RenderFailure,
    SiteMirrorError,
    UnsupportedContentType,
)
from .paths import local_asset_path, page_file_path
from .rewriter import rewrite_document, unwrap_proxied_asset_url
from .site import crawl_site, crawl_site_async

__all__ = [
    # Data types
    "CrawlOptions",
    "CrawlResult",
    "FetchedPage",
    "RewrittenDocument",
    # Errors
    "SiteMirrorError",
    "InvalidURLError",
    "FetchError",
    "FetchTimeout",
    "FetchHTTPError",
    "NetworkError",
    "UnsupportedContentType",
    "RenderFailure",
    "AssetWriteError",
    # Building blocks
    "local_asset_path",
    "page_file_path",
    "rewrite_document",
    "unwrap_proxied_asset_url",
    # Site clone
    "crawl_site",
    "crawl_site_async",
    # MCP Server
    "mcp",
]


# Lazy import for mcp to avoid requiring fastmcp if not used
def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
