"""Sitemap discovery: ``/sitemap.xml`` to a flat, ordered list of page URLs."""

from __future__ import annotations

import contextlib
import dataclasses
import gzip
import logging
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

import httpx

from sitedump.fetch import FetchError, fetch

MIN_USABLE_URLS = 2
MAX_SITEMAP_NESTING = 3
MAX_SITEMAP_BYTES = 50 * 1024 * 1024

_log = logging.LoggerAdapter(logging.getLogger("sitedump.sitemap"), extra={"site": "-"})


@dataclasses.dataclass(frozen=True)
class SitemapOutcome:
    urls: Tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return bool(self.urls)


ABSENT = SitemapOutcome()


def sitemap_url_for(domain: str) -> str:
    return f"https://{domain}/sitemap.xml"


def _tag_endswith(el: ET.Element, name: str) -> bool:
    return isinstance(el.tag, str) and el.tag.lower().endswith(name)


def parse_sitemap(data: bytes) -> Tuple[List[str], List[str]]:
    """Return ``(page_urls, child_sitemap_urls)``. Raises ``ET.ParseError`` on bad XML."""
    root = ET.fromstring(data)
    pages: List[str] = []
    children: List[str] = []
    if _tag_endswith(root, "sitemapindex"):
        for sm in root:
            if _tag_endswith(sm, "sitemap"):
                for child in sm:
                    if _tag_endswith(child, "loc") and (child.text or "").strip():
                        children.append(child.text.strip())
    elif _tag_endswith(root, "urlset"):
        for url_el in root:
            if _tag_endswith(url_el, "url"):
                for child in url_el:
                    if _tag_endswith(child, "loc") and (child.text or "").strip():
                        pages.append(child.text.strip())
    return pages, children


async def load_sitemap(
    client: httpx.AsyncClient,
    sitemap_url: str,
    *,
    timeout: float,
    logger: Optional[logging.LoggerAdapter] = None,
    _nesting: int = 0,
) -> Optional[List[str]]:
    """Fetch and flatten one sitemap (following sitemap indexes).

    ``None`` means the document itself could not be fetched or parsed.
    """
    logger = logger or _log
    try:
        resp = await fetch(client, sitemap_url, timeout=timeout, max_bytes=MAX_SITEMAP_BYTES)
    except FetchError as e:
        logger.info(f"No sitemap at {sitemap_url}: {e}")
        return None
    data = resp.content
    if sitemap_url.lower().endswith(".gz") or "gzip" in resp.content_type:
        with contextlib.suppress(OSError, EOFError):
            data = gzip.decompress(data)
    try:
        pages, children = parse_sitemap(data)
    except ET.ParseError as e:
        logger.warning(f"Could not parse sitemap {sitemap_url}: {e}")
        return None

    if children and _nesting >= MAX_SITEMAP_NESTING:
        logger.warning(f"Sitemap nesting too deep at {sitemap_url}; ignoring {len(children)} child sitemap(s)")
        children = []
    for child_url in children:
        sub = await load_sitemap(client, child_url, timeout=timeout, logger=logger, _nesting=_nesting + 1)
        if sub is None:
            logger.warning(f"Skipping child sitemap {child_url}")
            continue
        pages.extend(sub)
    return list(dict.fromkeys(pages))


async def resolve_sitemap(
    client: httpx.AsyncClient,
    domain: str,
    *,
    timeout: float,
    logger: Optional[logging.LoggerAdapter] = None,
) -> SitemapOutcome:
    """Look for ``https://{domain}/sitemap.xml``.

    A sitemap listing fewer than two URLs is reported as absent so the run
    falls back to crawling.
    """
    logger = logger or _log
    urls = await load_sitemap(client, sitemap_url_for(domain), timeout=timeout, logger=logger)
    if not urls:
        return ABSENT
    if len(urls) < MIN_USABLE_URLS:
        logger.info(f"Sitemap for {domain} lists only {len(urls)} URL(s); not usable")
        return ABSENT
    return SitemapOutcome(tuple(urls))
