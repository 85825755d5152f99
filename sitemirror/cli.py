"""Command-line interface for cloning a website."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .cli_config import load_config
from .config import options_from_env
from .document import CrawlOptions, CrawlResult
from .errors import InvalidURLError


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sitemirror",
        description="Clone a website into a browsable offline copy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Clone into ./output/example.com
  sitemirror https://example.com

  # Custom output root and page limit
  sitemirror https://example.com -o ./cloned-site --max-pages 20

  # Only mirror assets hosted on the site itself
  sitemirror https://example.com --no-external-assets

  # Print the result as JSON
  sitemirror https://example.com --json

Settings can also come from SITEMIRROR_* variables in .env
(SITEMIRROR_OUTPUT_DIR, SITEMIRROR_MAX_PAGES, SITEMIRROR_CONCURRENCY, ...).
""",
    )

    parser.add_argument("url", help="Start URL of the site to clone")
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output root; pages go under <output>/<hostname> (default: ./output)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Maximum pages to visit (default: 100)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Concurrent asset downloads (default: 10)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 15)",
    )
    parser.add_argument(
        "--no-external-assets",
        action="store_false",
        dest="mirror_external_assets",
        default=None,
        help="Skip assets hosted on other origins",
    )
    parser.add_argument(
        "--no-render-fallback",
        action="store_false",
        dest="render_fallback",
        default=None,
        help="Do not retry failed pages in a headless browser",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the fallback browser window",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print the crawl result as JSON",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _build_options(args: argparse.Namespace) -> CrawlOptions:
    """Environment defaults overridden by explicit command-line flags."""
    overrides: Dict[str, Any] = {}
    if args.output:
        overrides["out_dir"] = args.output
    if args.max_pages is not None:
        overrides["max_pages"] = args.max_pages
    if args.concurrency is not None:
        overrides["concurrency"] = args.concurrency
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.mirror_external_assets is not None:
        overrides["mirror_external_assets"] = args.mirror_external_assets
    if args.render_fallback is not None:
        overrides["render_fallback"] = args.render_fallback
    if args.headed:
        overrides["headless"] = False
    return replace(options_from_env(), **overrides)


async def _run_async(args: argparse.Namespace) -> int:
    from . import crawl_site_async

    options = _build_options(args)
    result: CrawlResult = await crawl_site_async(args.url, options)

    if args.json_output:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(result.message)
        print(f"Output: {result.path}")
        print(f"Assets: {result.assets}")

    stats = result.stats
    failed = stats.get("assets_failed", 0) + stats.get("pages_failed", 0)
    if failed:
        logging.warning("%d item(s) failed; see warnings above", failed)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the sitemirror command."""
    args = _parse_args(argv)
    _setup_logging(args.verbose)
    load_config()

    try:
        return asyncio.run(_run_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except (InvalidURLError, ValueError) as exc:
        logging.error("Error: %s", exc)
        return 1
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
