"""Run orchestration: pick sitemap or crawl mode, fetch and extract pages in bounded batches."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import re
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlsplit

import httpx

from sitedump.config import Config
from sitedump.extract import ExtractedPage, ImageCandidate, extract
from sitedump.fetch import FetchError, build_client, fetch
from sitedump.frontier import CrawlFrontier
from sitedump.images import ImagePipeline
from sitedump.log import get_site_logger
from sitedump.models import ImageBlock, PageResult, ScrapeResult
from sitedump.sitemap import MIN_USABLE_URLS, load_sitemap, resolve_sitemap
from sitedump.urls import in_same_scope, looks_like_sitemap, normalize_url


def is_probably_html(url: str, content_type: Optional[str]) -> bool:
    if not content_type:
        return True
    ct = content_type.lower()
    if "text/html" in ct or "application/xhtml+xml" in ct:
        return True
    return bool(re.search(r"\.(?:x?html?)$", url.split("?")[0], flags=re.I))


@dataclasses.dataclass(frozen=True)
class PageOutcome:
    page: PageResult
    final_url: str
    links: Sequence[str]


class Scraper:
    """One scraping run over one site.

    All run state (frontier, image registry, results) lives on the instance,
    so two runs never share anything.
    """

    def __init__(
        self,
        cfg: Config,
        *,
        client: Optional[httpx.AsyncClient] = None,
        images_dir: Optional[Path] = None,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.cfg = cfg.validate()
        self.seed_url = normalize_url(cfg.url)
        self.site_slug = cfg.site_slug
        self.logger = logger or get_site_logger(self.site_slug)
        self.images_dir = Path(images_dir) if images_dir is not None else cfg.images_dir()
        self.sem = asyncio.Semaphore(cfg.concurrency)

        self._client = client
        self.frontier: Optional[CrawlFrontier] = None
        self.images: Optional[ImagePipeline] = None
        self.result = ScrapeResult()

    # --------------------------- Public API -------------------------------- #

    async def run(self) -> ScrapeResult:
        self.logger.info(
            f"Starting scrape: {self.seed_url} (concurrency {self.cfg.concurrency}, "
            f"max depth {self.cfg.max_depth}, max pages {self.cfg.max_pages})"
        )
        async with contextlib.AsyncExitStack() as stack:
            client = self._client
            if client is None:
                client = await stack.enter_async_context(build_client(self.cfg))
            self.images = ImagePipeline(
                client,
                self.images_dir,
                semaphore=self.sem,
                timeout=self.cfg.timeout,
                max_bytes=self.cfg.max_image_bytes,
                min_bytes=self.cfg.min_image_bytes,
                min_dimension=self.cfg.min_image_dimension,
                logger=self.logger,
            )

            sitemap_urls = await self._discover_sitemap(client)
            if sitemap_urls is not None:
                self.result.mode = "sitemap"
                self.logger.info(f"Sitemap mode: {len(sitemap_urls)} URL(s) to scrape")
                await self._scrape_sitemap(client, sitemap_urls)
            else:
                self.result.mode = "crawl"
                self.logger.info("No usable sitemap found, crawling from the seed URL")
                await self._crawl(client)

        self._log_summary()
        return self.result

    # --------------------------- Discovery --------------------------------- #

    def _in_scope(self, url: str) -> bool:
        return in_same_scope(url, self.seed_url, self.cfg.include_subdomains)

    def _prepare_sitemap_urls(self, urls: Sequence[str]) -> List[str]:
        prepared: List[str] = []
        for url in urls:
            n = normalize_url(url, base=self.seed_url)
            if self._in_scope(n):
                prepared.append(n)
            else:
                self.logger.debug(f"Ignoring out-of-scope sitemap entry: {url}")
        prepared = list(dict.fromkeys(prepared))
        if len(prepared) > self.cfg.max_pages:
            self.logger.info(f"Sitemap lists {len(prepared)} URL(s); keeping the first {self.cfg.max_pages}")
            prepared = prepared[: self.cfg.max_pages]
        return prepared

    async def _discover_sitemap(self, client: httpx.AsyncClient) -> Optional[List[str]]:
        """URLs for sitemap mode, or ``None`` to crawl instead."""
        if looks_like_sitemap(self.seed_url):
            self.logger.info(f"Seed URL looks like a sitemap: {self.seed_url}")
            urls = await load_sitemap(client, self.seed_url, timeout=self.cfg.timeout, logger=self.logger)
            if urls is None:
                self.logger.error(f"Could not read sitemap {self.seed_url}")
                return []
            return self._prepare_sitemap_urls(urls)

        domain = urlsplit(self.seed_url).netloc
        outcome = await resolve_sitemap(client, domain, timeout=self.cfg.timeout, logger=self.logger)
        if not outcome.found:
            return None
        urls = self._prepare_sitemap_urls(outcome.urls)
        if len(urls) < MIN_USABLE_URLS:
            self.logger.info(f"Sitemap has only {len(urls)} in-scope URL(s); not usable")
            return None
        return urls

    # ----------------------------- Modes ----------------------------------- #

    async def _scrape_sitemap(self, client: httpx.AsyncClient, urls: Sequence[str]) -> None:
        outcomes = await asyncio.gather(*(self._process_url(client, url) for url in urls))
        for outcome in outcomes:
            if outcome is not None:
                self.result.pages.append(outcome.page)

    async def _crawl(self, client: httpx.AsyncClient) -> None:
        frontier = self.frontier = CrawlFrontier(
            self.seed_url,
            max_depth=self.cfg.max_depth,
            max_pages=self.cfg.max_pages,
            include_subdomains=self.cfg.include_subdomains,
        )
        while not frontier.done:
            batch = frontier.next_level()
            self.logger.info(f"Depth {frontier.depth}: fetching {len(batch)} URL(s)")
            outcomes = await asyncio.gather(*(self._process_url(client, url) for url, _ in batch))

            discovered = []
            for outcome in outcomes:
                if outcome is None:
                    continue
                frontier.record_page()
                frontier.mark_visited(outcome.final_url)
                self.result.pages.append(outcome.page)
                discovered.append((outcome.final_url, outcome.links))

            added = frontier.advance(discovered)
            if added:
                self.logger.info(f"Discovered {added} new URL(s) for depth {frontier.depth}")
        if frontier.budget_left <= 0:
            self.logger.info(f"Reached max pages limit ({self.cfg.max_pages})")

    # ------------------------------ Pages ---------------------------------- #

    def _record_failure(self, url: str, reason: str, message: Optional[str] = None) -> None:
        self.result.failures[url] = reason
        self.logger.warning(f"Skipped {url}: {message or reason}")

    async def _process_url(self, client: httpx.AsyncClient, url: str) -> Optional[PageOutcome]:
        try:
            async with self.sem:
                resp = await fetch(client, url, timeout=self.cfg.timeout, max_bytes=self.cfg.max_page_bytes)
        except FetchError as e:
            self._record_failure(url, e.reason, str(e))
            return None

        if not is_probably_html(resp.final_url, resp.content_type):
            self._record_failure(url, f"not HTML ({resp.content_type})")
            return None

        try:
            extracted = extract(resp.text, resp.final_url)
        except Exception as e:
            self.logger.exception(f"Unhandled error extracting {url}: {e}")
            self.result.failures[url] = "extraction error"
            return None
        extracted.url = url

        resolved = await self._resolve_images(extracted)
        page = extracted.build(resolved)
        self.logger.info(f"Scraped: {url} ({self._page_stats(page)})")
        return PageOutcome(page=page, final_url=resp.final_url, links=extracted.links)

    async def _resolve_images(self, extracted: ExtractedPage) -> Dict[ImageCandidate, Optional[ImageBlock]]:
        images = self.images
        if images is None:
            raise RuntimeError("image pipeline is created by run(); pages cannot be processed before it")
        candidates = extracted.images
        blocks = await asyncio.gather(*(self._resolve_image(images, c) for c in candidates))
        return dict(zip(candidates, blocks))

    @staticmethod
    async def _resolve_image(images: ImagePipeline, candidate: ImageCandidate) -> Optional[ImageBlock]:
        for src in candidate.sources:
            asset = await images.acquire(src, width=candidate.width, height=candidate.height)
            if asset is not None:
                return ImageBlock(original_url=src, local_path=asset.local_path, alt_text=candidate.alt_text)
        return None

    @staticmethod
    def _page_stats(page: PageResult) -> str:
        kinds = Counter(type(b).__name__ for b in page.content_blocks)
        stats = f"{len(page.content_blocks)} blocks, {page.total_words} words, {kinds['ImageBlock']} images"
        if kinds["FormBlock"]:
            stats += f", {kinds['FormBlock']} forms"
        return stats

    def _log_summary(self) -> None:
        scraped = self.result.total_pages
        skipped = len(self.result.failures)
        self.logger.info(f"Completed: scraped {scraped}/{scraped + skipped} page(s), skipped {skipped}")
        for reason, count in sorted(Counter(self.result.failures.values()).items()):
            self.logger.info(f"  {reason}: {count}")
        if self.images is not None:
            self.logger.info(f"Images saved: {self.images.writes}")


async def scrape(
    cfg: Config,
    *,
    client: Optional[httpx.AsyncClient] = None,
    images_dir: Optional[Path] = None,
) -> ScrapeResult:
    return await Scraper(cfg, client=client, images_dir=images_dir).run()
