"""MCP server exposing the site cloner as a tool.

Usage:
    # STDIO (for desktop MCP clients)
    python -m sitemirror.mcp_server

    # HTTP (for remote access)
    python -m sitemirror.mcp_server --transport http --port 8000

Environment Variables:
    SITEMIRROR_OUTPUT_DIR: Default output root (default: ./output)
    SITEMIRROR_MAX_PAGES, SITEMIRROR_CONCURRENCY, SITEMIRROR_TIMEOUT, ...
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .config import options_from_env
from .errors import InvalidURLError

LOGGER = logging.getLogger(__name__)

mcp = FastMCP(
    name="Site Mirror",
    instructions="""
    Clones a website into a browsable offline copy on the server's disk.

    Tool:
       - clone_site: crawl pages within the URL's origin, rewrite links to
         local paths and download scripts, stylesheets and images.

    The result is JSON with the output directory and the number of assets
    discovered.
    """,
)


async def clone_site(
    url: str,
    max_pages: Optional[int] = None,
    concurrency: Optional[int] = None,
    mirror_external_assets: Optional[bool] = None,
    output_dir: Optional[str] = None,
) -> str:
    """
    Clone a website into a fully functional offline version.

    Args:
        url: Start URL (absolute http or https)
        max_pages: Maximum pages to visit (default: 100)
        concurrency: Concurrent asset downloads (default: 10)
        mirror_external_assets: Download assets from other origins (default: true)
        output_dir: Output root; pages go under <output_dir>/<hostname>

    Returns:
        JSON string with message, path, assets and stats, or an error object.

    Examples:
        clone_site(url="https://example.com")
        clone_site(url="https://example.com", max_pages=1)
    """
    from . import crawl_site_async

    overrides: Dict[str, Any] = {}
    if max_pages is not None:
        overrides["max_pages"] = max_pages
    if concurrency is not None:
        overrides["concurrency"] = concurrency
    if mirror_external_assets is not None:
        overrides["mirror_external_assets"] = mirror_external_assets
    if output_dir:
        overrides["out_dir"] = output_dir

    try:
        options = replace(options_from_env(), **overrides)
        LOGGER.info("Cloning %s (max_pages=%d)", url, options.max_pages)
        result = await crawl_site_async(url, options)
    except (InvalidURLError, ValueError) as exc:
        LOGGER.error("clone_site rejected %s: %s", url, exc)
        return json.dumps({"error": str(exc), "url": url}, ensure_ascii=False)

    LOGGER.info("Cloned %s into %s (%d assets)", url, result.path, result.assets)
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


mcp.tool(clone_site)


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the site mirror MCP server.",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    load_dotenv()

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
