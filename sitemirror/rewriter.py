"""Rewrite one page's markup so it references the offline copy.

Embedded resources (images, linked resources, external scripts) are
pointed at their mapped local files and collected as assets. Same-origin
hyperlinks are rewritten to pretty paths and collected as pages to crawl.
Cross-origin hyperlinks are left alone.

Running :func:`rewrite_document` on its own output is a no-op: references
already in local form are skipped, and rewritten hyperlinks normalize to the
URLs that were discovered the first time.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, urljoin, urlsplit

from bs4 import BeautifulSoup

from .document import RewrittenDocument
from .errors import InvalidURLError
from .paths import (
    is_http_url,
    is_local_asset_reference,
    normalize_page_url,
    origin_of,
    pretty_path,
    relative_asset_reference,
)

LOGGER = logging.getLogger(__name__)

IMAGE_SOURCE_ATTRS: Tuple[str, ...] = ("src", "data-src")
SRCSET_TAGS: Tuple[str, ...] = ("img", "source")
# Attributes that only matter to lazy loaders or image proxies.
STRIPPED_IMAGE_ATTRS: Tuple[str, ...] = (
    "data-src",
    "data-nimg",
    "decoding",
    "loading",
)
SKIPPED_HREF_PREFIXES: Tuple[str, ...] = ("#", "mailto:", "tel:", "javascript:")

# (path marker, query parameter carrying the real image URL)
PROXY_RULES: List[Tuple[str, str]] = [
    ("/_next/image", "url"),
    ("/_vercel/image", "url"),
]

Origin = Tuple[str, str, Optional[int]]


def unwrap_proxied_asset_url(
    url: str, rules: Optional[Sequence[Tuple[str, str]]] = None
) -> str:
    """Return the inner URL of an image-optimization proxy reference.

    ``/_next/image?url=%2Fimg%2Fhero.png&w=640`` becomes ``/img/hero.png``.
    Anything that does not match a rule is returned unchanged.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    for marker, param in rules if rules is not None else PROXY_RULES:
        if marker not in parts.path:
            continue
        values = parse_qs(parts.query).get(param)
        if values and values[0]:
            return values[0]
    return url


def split_srcset(value: str) -> List[Tuple[str, str]]:
    """Split a ``srcset`` value into ``(url, descriptors)`` candidates.

    A URL runs to the next whitespace, so commas inside it (``data:`` URIs,
    query strings) do not split candidates; a trailing comma ends it.
    """
    candidates: List[Tuple[str, str]] = []
    pos, length = 0, len(value)
    while pos < length:
        while pos < length and (value[pos].isspace() or value[pos] == ","):
            pos += 1
        start = pos
        while pos < length and not value[pos].isspace():
            pos += 1
        url = value[start:pos]
        if not url:
            break
        if url.endswith(","):
            candidates.append((url.rstrip(","), ""))
            continue
        start = pos
        depth = 0
        while pos < length:
            char = value[pos]
            if char == "(":
                depth += 1
            elif char == ")" and depth:
                depth -= 1
            elif char == "," and not depth:
                break
            pos += 1
        candidates.append((url, value[start:pos].strip()))
        pos += 1
    return candidates


def _is_data_uri(value: str) -> bool:
    return value.strip().lower().startswith("data:")


class _DocumentRewriter:
    def __init__(
        self, page_url: str, root_origin: Origin, base_url: Optional[str] = None
    ):
        self.page_url = page_url
        self.base_url = base_url or page_url
        self.root_origin = root_origin
        self.assets: List[str] = []
        self.pages: List[str] = []
        self._asset_set: set[str] = set()
        self._page_set: set[str] = set()

    def resolve(self, reference: str) -> Optional[str]:
        try:
            absolute = urljoin(self.base_url, reference.strip())
            urlsplit(absolute).port  # raises ValueError for a bad port
        except ValueError as exc:
            error = InvalidURLError(
                f"Unresolvable reference {reference!r}: {exc}", url=reference
            )
            LOGGER.warning("Skipping reference on %s: %s", self.page_url, error)
            return None
        return absolute

    def register_asset(self, absolute: str) -> None:
        if absolute not in self._asset_set:
            self._asset_set.add(absolute)
            self.assets.append(absolute)

    def local_reference(self, reference: str, *, unwrap: bool = False) -> Optional[str]:
        """Local replacement for an asset reference, or None to leave it."""
        if not reference or not reference.strip() or _is_data_uri(reference):
            return None
        if is_local_asset_reference(reference):
            return None
        target = unwrap_proxied_asset_url(reference.strip()) if unwrap else reference
        absolute = self.resolve(target)
        if absolute is None:
            return None
        self.register_asset(absolute)
        return relative_asset_reference(self.page_url, absolute)

    def rewrite_srcset(self, srcset: str) -> str:
        candidates = []
        for url, descriptors in split_srcset(srcset):
            local = self.local_reference(url, unwrap=True)
            candidates.append(" ".join(filter(None, [local or url, descriptors])))
        return ", ".join(candidates)

    def rewrite_images(self, soup: BeautifulSoup) -> None:
        for img in soup.find_all("img"):
            for attr in IMAGE_SOURCE_ATTRS:
                value = img.get(attr)
                if not isinstance(value, str):
                    continue
                local = self.local_reference(value, unwrap=True)
                if local is not None:
                    img["src"] = local
            for attr in STRIPPED_IMAGE_ATTRS:
                if attr in img.attrs:
                    del img[attr]

        for tag in soup.find_all(list(SRCSET_TAGS)):
            srcset = tag.get("srcset")
            if isinstance(srcset, str) and srcset.strip():
                tag["srcset"] = self.rewrite_srcset(srcset)

    def rewrite_attribute(self, soup: BeautifulSoup, name: str, attr: str) -> None:
        for tag in soup.find_all(name, attrs={attr: True}):
            value = tag.get(attr)
            if not isinstance(value, str):
                continue
            local = self.local_reference(value)
            if local is not None:
                tag[attr] = local

    def rewrite_hyperlinks(self, soup: BeautifulSoup) -> None:
        for anchor in soup.find_all("a", href=True):
            href = anchor.get("href")
            if not isinstance(href, str):
                continue
            stripped = href.strip()
            if not stripped or stripped.lower().startswith(SKIPPED_HREF_PREFIXES):
                continue
            absolute = self.resolve(stripped)
            if absolute is None or not is_http_url(absolute):
                continue
            if origin_of(absolute) != self.root_origin:
                continue

            normalized = normalize_page_url(absolute)
            anchor["href"] = pretty_path(urlsplit(normalized).path)
            if normalized not in self._page_set:
                self._page_set.add(normalized)
                self.pages.append(normalized)


def rewrite_document(
    html: str,
    page_url: str,
    root_origin: Origin,
    *,
    base_url: Optional[str] = None,
) -> RewrittenDocument:
    """Rewrite ``html`` fetched for ``page_url``.

    Args:
        html: Raw page markup.
        page_url: Page URL the markup is saved under; the depth of its saved
            file decides how local asset references climb to the site root.
        root_origin: ``(scheme, host, port)`` of the crawl's start URL, as
            returned by :func:`sitemirror.paths.origin_of`.
        base_url: URL the markup actually came from (after redirects);
            relative references resolve against it. Defaults to ``page_url``.

    Returns:
        RewrittenDocument with the new markup, the absolute asset URLs it
        references and the normalized same-origin page URLs it links to,
        each in first-seen order without duplicates.
    """
    soup = BeautifulSoup(html, "html.parser")
    rewriter = _DocumentRewriter(page_url, root_origin, base_url)

    rewriter.rewrite_images(soup)
    rewriter.rewrite_attribute(soup, "link", "href")
    rewriter.rewrite_attribute(soup, "script", "src")
    rewriter.rewrite_hyperlinks(soup)

    return RewrittenDocument(
        html=str(soup), assets=rewriter.assets, pages=rewriter.pages
    )
