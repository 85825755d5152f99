"""Data structures shared by the crawl engine and its callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


@dataclass
class CrawlOptions:
    """Options for cloning a site.

    Attributes:
        out_dir: Output root. Pages land under ``<out_dir>/<hostname>``.
            Defaults to ``./output``.
        max_pages: Upper bound on visited page URLs.
        mirror_external_assets: Download assets hosted on other origins.
        concurrency: Maximum in-flight asset downloads.
        timeout: Per-request timeout in seconds.
        render_fallback: Retry failed page fetches in a headless browser.
        render_timeout: Navigation timeout for the headless browser, in seconds.
        headless: Run the fallback browser without a window.
        user_agent: Override the default User-Agent header.
    """

    out_dir: Optional[Union[str, Path]] = None
    max_pages: int = 100
    mirror_external_assets: bool = True
    concurrency: int = 10
    timeout: float = 15.0
    render_fallback: bool = True
    render_timeout: float = 30.0
    headless: bool = True
    user_agent: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be >= 1, got {self.max_pages}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")


@dataclass(slots=True)
class FetchedPage:
    """Markup retrieved for a page URL by one of the fetch strategies."""

    url: str
    text: str
    content_type: str = ""
    rendered: bool = False


@dataclass(slots=True)
class RewrittenDocument:
    """Output of the document rewriter for one page."""

    html: str
    assets: List[str] = field(default_factory=list)
    pages: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CrawlResult:
    """Summary returned once a crawl finishes.

    ``assets`` counts distinct assets *discovered*; downloads that failed are
    still included. The per-outcome breakdown lives in ``stats``.
    """

    message: str
    path: str
    assets: int
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "path": self.path,
            "assets": self.assets,
            "stats": dict(self.stats),
        }
