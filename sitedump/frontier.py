"""Breadth-first crawl frontier, one depth level at a time."""

from __future__ import annotations

from typing import Iterable, List, Set, Tuple

from sitedump.urls import in_same_scope, normalize_url


class CrawlFrontier:
    """Owns the visited set, the current level and the page budget.

    URLs are claimed (marked visited and charged to the budget) when they
    are enqueued, so a URL is never handed out twice, even within one
    concurrent batch. A level is handed out with :meth:`next_level`; once
    every page of it has been processed the caller passes the discovered
    links to :meth:`advance` to build the next one.
    """

    def __init__(self, seed_url: str, *, max_depth: int, max_pages: int, include_subdomains: bool = True) -> None:
        self.seed_url = normalize_url(seed_url)
        self.max_depth = max_depth
        self.max_pages = max_pages
        self.include_subdomains = include_subdomains

        self.visited: Set[str] = set()
        self.depth = 0
        self.enqueued = 0
        self.pages_emitted = 0
        self._level: List[str] = []

        if self.claim(self.seed_url):
            self._level.append(self.seed_url)

    @property
    def done(self) -> bool:
        return not self._level

    @property
    def budget_left(self) -> int:
        return self.max_pages - self.enqueued

    def claim(self, url: str) -> bool:
        """Mark ``url`` visited and charge it to the budget; ``False`` if it was seen or no budget is left."""
        if url in self.visited or self.enqueued >= self.max_pages:
            return False
        self.visited.add(url)
        self.enqueued += 1
        return True

    def mark_visited(self, url: str) -> None:
        """Record a URL reached another way (e.g. a redirect target) without charging the budget."""
        self.visited.add(normalize_url(url))

    def record_page(self) -> None:
        if self.pages_emitted >= self.max_pages:
            raise RuntimeError("page budget exceeded")
        self.pages_emitted += 1

    def next_level(self) -> List[Tuple[str, int]]:
        return [(url, self.depth) for url in self._level]

    def accepts(self, url: str) -> bool:
        return in_same_scope(url, self.seed_url, self.include_subdomains)

    def advance(self, discovered: Iterable[Tuple[str, Iterable[str]]]) -> int:
        """Build the next level from ``(page_url, links)`` pairs of the finished one.

        Returns the number of URLs in the new level; zero means the crawl is over.
        """
        next_depth = self.depth + 1
        self._level = []
        self.depth = next_depth
        if next_depth > self.max_depth:
            return 0
        for page_url, links in discovered:
            for link in links:
                if self.budget_left <= 0:
                    return len(self._level)
                url = normalize_url(link, base=page_url)
                if not self.accepts(url):
                    continue
                if self.claim(url):
                    self._level.append(url)
        return len(self._level)
