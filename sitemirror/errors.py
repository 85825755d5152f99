"""Error kinds raised by the crawl engine.

Per-page and per-asset errors are caught close to where they happen and
logged; only :class:`InvalidURLError` for the start URL escapes a crawl.
"""

from __future__ import annotations

from typing import Optional


class SiteMirrorError(Exception):
    """Base class for all sitemirror errors."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class InvalidURLError(SiteMirrorError):
    """Raised for a malformed start URL or an unresolvable reference."""


class FetchError(SiteMirrorError):
    """Raised when a page or asset cannot be retrieved."""


class FetchTimeout(FetchError):
    """The request did not complete within the configured timeout."""


class FetchHTTPError(FetchError):
    """The server answered with a non-2xx status."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message, url=url)


class NetworkError(FetchError):
    """Transport-level failure (DNS, connection reset, TLS, ...)."""


class UnsupportedContentType(FetchError):
    """A page URL answered with something other than an HTML document."""

    def __init__(self, message: str, url: str = "", content_type: str = ""):
        self.content_type = content_type
        super().__init__(message, url=url)


class RenderFailure(FetchError):
    """The headless browser could not produce markup for a page."""


class AssetWriteError(SiteMirrorError):
    """A downloaded asset could not be written to disk."""
