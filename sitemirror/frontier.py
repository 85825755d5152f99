"""Crawl state: the page frontier and the asset registry."""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, Optional, Set, Tuple


class Frontier:
    """FIFO queue of pages to visit plus the set already visited.

    A URL is pending at most once, and once popped it is visited and can
    never be queued again.
    """

    def __init__(self, max_pages: int):
        if max_pages < 1:
            raise ValueError(f"max_pages must be >= 1, got {max_pages}")
        self.max_pages = max_pages
        self._queue: Deque[str] = deque()
        self._pending: Set[str] = set()
        self._visited: Set[str] = set()
        self._aliases: Set[str] = set()

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def visited(self) -> Set[str]:
        return set(self._visited)

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    def is_known(self, url: str) -> bool:
        return url in self._visited or url in self._pending or url in self._aliases

    def alias(self, url: str) -> None:
        """Treat ``url`` as another spelling of a page already queued or visited.

        An alias is never queued and does not count toward the page cap.
        """
        self._aliases.add(url)

    def enqueue(self, url: str) -> bool:
        """Queue ``url`` unless already pending or visited. Returns True if added."""
        if self.is_known(url):
            return False
        self._queue.append(url)
        self._pending.add(url)
        return True

    def extend(self, urls: Iterable[str]) -> int:
        return sum(1 for url in urls if self.enqueue(url))

    def has_capacity(self) -> bool:
        return len(self._visited) < self.max_pages

    def next_url(self) -> Optional[str]:
        """Pop the next unvisited URL and mark it visited.

        Returns None once the queue is drained or the page cap is reached.
        """
        while self._queue and self.has_capacity():
            url = self._queue.popleft()
            self._pending.discard(url)
            if url in self._visited:
                continue
            self._visited.add(url)
            return url
        return None


class AssetRegistry:
    """Deduplicated, insertion-ordered set of absolute asset URLs."""

    def __init__(self) -> None:
        self._urls: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._urls)

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def add(self, url: str) -> bool:
        if url in self._urls:
            return False
        self._urls[url] = None
        return True

    def update(self, urls: Iterable[str]) -> int:
        return sum(1 for url in urls if self.add(url))

    def snapshot(self) -> Tuple[str, ...]:
        """Frozen view handed to the asset materializer."""
        return tuple(self._urls)
