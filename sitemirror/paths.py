"""Deterministic mapping from remote URLs to files of the offline copy."""

from __future__ import annotations

import hashlib
import posixpath
import re
from pathlib import Path
from typing import Optional, Tuple, Union
from urllib.parse import SplitResult, unquote, urlsplit

ASSETS_DIR = "assets"
FALLBACK_ASSET_NAME = "asset"
INDEX_DOCUMENT = "index.html"
HASH_LENGTH = 6

_DEFAULT_PORTS = {"http": 80, "https": 443}
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_SEGMENT_LENGTH = 100
_LOCAL_ASSET_REFERENCE = re.compile(
    r"^(?:\.\./)*" + ASSETS_DIR + r"/[0-9a-f]{%d}-[^/?#]+$" % HASH_LENGTH
)


def sanitize_segment(segment: str) -> str:
    """Make a single URL path segment safe to use as a file name."""
    cleaned = _UNSAFE_CHARS.sub("_", unquote(segment)).strip("._")
    return cleaned[:_MAX_SEGMENT_LENGTH] or FALLBACK_ASSET_NAME


def url_hash(url: str) -> str:
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def local_asset_path(url: str) -> str:
    """Return ``assets/<hash>-<basename>`` for an absolute asset URL.

    The basename is the last non-empty path segment; the hash covers the full
    URL so two assets sharing a basename never collide.
    """
    segments = [part for part in urlsplit(url).path.split("/") if part]
    basename = sanitize_segment(segments[-1]) if segments else FALLBACK_ASSET_NAME
    return f"{ASSETS_DIR}/{url_hash(url)}-{basename}"


def is_local_asset_reference(value: str) -> bool:
    """True for references this package already rewrote to the assets dir."""
    return bool(_LOCAL_ASSET_REFERENCE.match(value.strip()))


def has_extension(path: str) -> bool:
    return bool(posixpath.splitext(posixpath.basename(path))[1])


def pretty_path(path: str) -> str:
    """Directory-style form of a URL path: ``/about`` becomes ``/about/``."""
    if not path:
        return "/"
    if path.endswith("/") or has_extension(path):
        return path
    return path + "/"


def page_depth(page_url: str) -> int:
    """Number of directories between the site root and the saved page file."""
    path = urlsplit(page_url).path or "/"
    if not path.endswith("/") and not has_extension(path):
        path += "/"
    return len([part for part in path.split("/")[:-1] if part])


def relative_asset_reference(page_url: str, asset_url: str) -> str:
    """Reference to the local asset file as seen from the page's saved file."""
    return "../" * page_depth(page_url) + local_asset_path(asset_url)


def page_file_path(url: str, output_dir: Union[str, Path]) -> Path:
    """File under ``output_dir`` holding the page fetched from ``url``."""
    path = unquote(urlsplit(url).path) or "/"
    if path.endswith("/"):
        path += INDEX_DOCUMENT
    elif not has_extension(path):
        path += "/" + INDEX_DOCUMENT
    parts = [part for part in path.split("/") if part not in ("", ".", "..")]
    return Path(output_dir).joinpath(*parts)


def origin_of(url: str) -> Tuple[str, str, Optional[int]]:
    """``(scheme, host, port)`` with the scheme's default port filled in.

    Raises ValueError for an unparsable port.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port or _DEFAULT_PORTS.get(scheme)
    return scheme, (parts.hostname or "").lower(), port


def is_http_url(url: str) -> bool:
    return urlsplit(url).scheme.lower() in _DEFAULT_PORTS


def _canonical_netloc(parts: SplitResult) -> str:
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += ":" + parts.password
        host = f"{userinfo}@{host}"
    return host


def canonicalize_url(url: str) -> str:
    """Lowercase scheme and host, drop a default port and the fragment.

    Path and query are kept as given, except that an empty path becomes
    ``/``. Raises ValueError for an unparsable port.
    """
    parts = urlsplit(url)
    return parts._replace(
        scheme=parts.scheme.lower(),
        netloc=_canonical_netloc(parts),
        path=parts.path or "/",
        fragment="",
    ).geturl()


def normalize_page_url(url: str) -> str:
    """Canonical page URL without query or fragment, in pretty-path form.

    Two spellings of the same page (host case, explicit default port,
    missing trailing slash) normalize to the same string.
    """
    parts = urlsplit(url)
    return parts._replace(
        scheme=parts.scheme.lower(),
        netloc=_canonical_netloc(parts),
        path=pretty_path(parts.path),
        query="",
        fragment="",
    ).geturl()
