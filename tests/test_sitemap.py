import gzip

import httpx

from sitedump.sitemap import ABSENT, load_sitemap, parse_sitemap, resolve_sitemap

from conftest import sitemap_xml

SITEMAP = "https://example.com/sitemap.xml"


async def test_found_with_first_seen_order_and_dedup(web):
    web.xml(SITEMAP, sitemap_xml(
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/a",
        "https://example.com/c",
    ))
    async with web.client() as client:
        outcome = await resolve_sitemap(client, "example.com", timeout=5)
    assert outcome.found
    assert outcome.urls == ("https://example.com/a", "https://example.com/b", "https://example.com/c")


async def test_single_url_sitemap_is_not_usable(web):
    web.xml(SITEMAP, sitemap_xml("https://example.com/"))
    async with web.client() as client:
        assert await resolve_sitemap(client, "example.com", timeout=5) == ABSENT


async def test_missing_sitemap_is_absent(web):
    async with web.client() as client:
        outcome = await resolve_sitemap(client, "example.com", timeout=5)
    assert not outcome.found
    assert web.requests == [SITEMAP]


async def test_malformed_xml_is_absent(web):
    web.xml(SITEMAP, "<urlset><url><loc>https://example.com/a</loc></url")
    async with web.client() as client:
        assert await resolve_sitemap(client, "example.com", timeout=5) == ABSENT


async def test_fetch_failure_is_absent(web):
    web.timeout(SITEMAP)
    async with web.client() as client:
        assert await resolve_sitemap(client, "example.com", timeout=5) == ABSENT


async def test_sitemap_index_is_flattened_in_order(web):
    web.xml(SITEMAP, (
        '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        "<sitemap><loc>https://example.com/posts.xml</loc></sitemap>"
        "<sitemap><loc>https://example.com/broken.xml</loc></sitemap>"
        "<sitemap><loc>https://example.com/pages.xml</loc></sitemap>"
        "</sitemapindex>"
    ))
    web.xml("https://example.com/posts.xml", sitemap_xml("https://example.com/p1", "https://example.com/p2"))
    web.xml("https://example.com/pages.xml", sitemap_xml("https://example.com/about", "https://example.com/p1"))
    async with web.client() as client:
        outcome = await resolve_sitemap(client, "example.com", timeout=5)
    assert outcome.urls == ("https://example.com/p1", "https://example.com/p2", "https://example.com/about")


async def test_gzipped_sitemap(web):
    body = gzip.compress(sitemap_xml("https://example.com/a", "https://example.com/b").encode())
    web.add(
        "https://example.com/sitemap.xml.gz",
        lambda request: httpx.Response(200, content=body, headers={"Content-Type": "application/x-gzip"}),
    )
    async with web.client() as client:
        urls = await load_sitemap(client, "https://example.com/sitemap.xml.gz", timeout=5)
    assert urls == ["https://example.com/a", "https://example.com/b"]


def test_parse_sitemap_ignores_empty_locs():
    pages, children = parse_sitemap(
        b"<urlset><url><loc>  https://example.com/a  </loc></url><url><loc></loc></url></urlset>"
    )
    assert pages == ["https://example.com/a"]
    assert children == []
