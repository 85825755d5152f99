"""Defaults and factory functions for HTTP and browser configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

import httpx
from crawl4ai import BrowserConfig, CrawlerRunConfig
from crawl4ai.async_configs import CacheMode

from .document import CrawlOptions

LOGGER = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "output"
DEFAULT_MAX_PAGES = 100
DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT = 15.0
DEFAULT_RENDER_TIMEOUT = 30.0

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.7",
}

DOCUMENT_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


# env var -> (CrawlOptions field, converter)
_ENV_FIELDS: Dict[str, tuple[str, Callable[[str], Any]]] = {
    "SITEMIRROR_OUTPUT_DIR": ("out_dir", str),
    "SITEMIRROR_MAX_PAGES": ("max_pages", int),
    "SITEMIRROR_CONCURRENCY": ("concurrency", int),
    "SITEMIRROR_TIMEOUT": ("timeout", float),
    "SITEMIRROR_MIRROR_EXTERNAL": ("mirror_external_assets", _parse_bool),
    "SITEMIRROR_RENDER_FALLBACK": ("render_fallback", _parse_bool),
    "SITEMIRROR_USER_AGENT": ("user_agent", str),
}


def options_from_env(base: Optional[CrawlOptions] = None) -> CrawlOptions:
    """Return ``base`` (or defaults) updated from ``SITEMIRROR_*`` variables.

    Variables are read at call time so a late ``.env`` load is honoured.
    Values that fail to parse or validate are logged and ignored.
    """
    options = base or CrawlOptions()
    for env_name, (attr, convert) in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is None or not raw.strip():
            continue
        try:
            options = replace(options, **{attr: convert(raw.strip())})
        except ValueError as exc:
            LOGGER.warning("Ignoring %s=%r: %s", env_name, raw, exc)
    return options


def is_document_content_type(content_type: str) -> bool:
    lowered = (content_type or "").lower()
    return any(kind in lowered for kind in DOCUMENT_CONTENT_TYPES)


def build_request_headers(options: CrawlOptions) -> Dict[str, str]:
    headers = dict(DEFAULT_HEADERS)
    headers["User-Agent"] = options.user_agent or DEFAULT_USER_AGENT
    return headers


def build_http_client(options: CrawlOptions) -> httpx.AsyncClient:
    """Shared client for page and asset fetches; every call is time-bounded."""
    return httpx.AsyncClient(
        headers=build_request_headers(options),
        timeout=httpx.Timeout(options.timeout),
        follow_redirects=True,
        limits=httpx.Limits(max_connections=max(options.concurrency, 1) + 1),
    )


def build_browser_config(options: CrawlOptions) -> BrowserConfig:
    return BrowserConfig(
        headless=options.headless,
        use_persistent_context=False,
        user_agent=options.user_agent or DEFAULT_USER_AGENT,
        verbose=False,
    )


def build_render_run_config(options: CrawlOptions) -> CrawlerRunConfig:
    """Run config for the headless fallback: full markup after network idle."""
    return CrawlerRunConfig(
        verbose=False,
        wait_until="networkidle",
        page_timeout=int(options.render_timeout * 1000),
        cache_mode=CacheMode.BYPASS,
    )
