"""Download every registered asset once, with bounded concurrency."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import httpx

from .errors import AssetWriteError, FetchError
from .fetch import fetch_binary
from .paths import is_http_url, local_asset_path, origin_of

LOGGER = logging.getLogger(__name__)

Origin = Tuple[str, str, Optional[int]]


@dataclass
class AssetStats:
    """Outcome counts for one materialization batch."""

    written: int = 0
    skipped: int = 0
    failed: int = 0


def _write_asset(target: Path, data: bytes, url: str) -> None:
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as exc:
        raise AssetWriteError(f"Cannot write {target}: {exc}", url=url) from exc


async def materialize_assets(
    client: httpx.AsyncClient,
    assets: Iterable[str],
    output_dir: Union[str, Path],
    root_origin: Origin,
    *,
    concurrency: int = 10,
    mirror_external_assets: bool = True,
    timeout: Optional[float] = None,
) -> AssetStats:
    """Fetch ``assets`` and write each to its mapped path under ``output_dir``.

    At most ``concurrency`` downloads are in flight at once. A failure is
    logged and only affects that asset.

    Args:
        client: Shared HTTP client.
        assets: Absolute asset URLs, already deduplicated.
        output_dir: Site root of the offline copy.
        root_origin: Origin of the crawl's start URL.
        concurrency: Maximum simultaneous downloads (>= 1).
        mirror_external_assets: When False, assets from other origins are
            skipped.
        timeout: Total deadline per download in seconds; defaults to the
            client's read timeout.

    Returns:
        AssetStats with written/skipped/failed counts.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    root = Path(output_dir)
    semaphore = asyncio.Semaphore(concurrency)
    stats = AssetStats()

    async def _materialize(url: str) -> None:
        try:
            if not is_http_url(url):
                LOGGER.debug("Skipping non-HTTP asset %s", url)
                stats.skipped += 1
                return
            if not mirror_external_assets and origin_of(url) != root_origin:
                LOGGER.debug("Skipping external asset %s", url)
                stats.skipped += 1
                return

            async with semaphore:
                data = await fetch_binary(client, url, timeout)

            target = root / local_asset_path(url)
            _write_asset(target, data, url)
        except (FetchError, AssetWriteError, ValueError) as exc:
            stats.failed += 1
            LOGGER.warning("Failed asset %s: %s", url, exc)
            return

        stats.written += 1
        LOGGER.info("Asset: %s", target)

    await asyncio.gather(*(_materialize(url) for url in assets))

    LOGGER.info(
        "Assets complete: %d written, %d skipped, %d failed",
        stats.written,
        stats.skipped,
        stats.failed,
    )
    return stats
