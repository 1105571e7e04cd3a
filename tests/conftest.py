import io
import random
from typing import Callable, Dict, List, Union

import httpx
import pytest
from PIL import Image

from sitedump.config import Config

Route = Callable[[httpx.Request], httpx.Response]


def make_png(width: int = 32, height: int = 32, seed: int = 0) -> bytes:
    """Noise PNG; noise keeps it from compressing below the tracking-pixel byte threshold."""
    rnd = random.Random(seed)
    raw = bytes(rnd.getrandbits(8) for _ in range(width * height * 3))
    buf = io.BytesIO()
    Image.frombytes("RGB", (width, height), raw).save(buf, format="PNG")
    return buf.getvalue()


def sitemap_xml(*urls: str) -> str:
    entries = "".join(f"<url><loc>{u}</loc></url>" for u in urls)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{entries}</urlset>'
    )


class FakeWeb:
    """In-memory web served through ``httpx.MockTransport``; unknown URLs are 404."""

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.requests: List[str] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def html(self, url: str, body: str, status: int = 200) -> None:
        self.add(url, lambda request: httpx.Response(status, html=body))

    def xml(self, url: str, body: Union[str, bytes]) -> None:
        self.add(url, lambda request: httpx.Response(200, content=body, headers={"Content-Type": "application/xml"}))

    def image(self, url: str, data: bytes, content_type: str = "image/png") -> None:
        self.add(url, lambda request: httpx.Response(200, content=data, headers={"Content-Type": content_type}))

    def timeout(self, url: str) -> None:
        def route(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        self.add(url, route)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        return route(request)

    def count(self, url: str) -> int:
        return self.requests.count(url)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=True)


@pytest.fixture()
def web() -> FakeWeb:
    return FakeWeb()


@pytest.fixture()
def cfg(tmp_path) -> Config:
    return Config(
        url="https://example.com",
        concurrency=4,
        timeout=5.0,
        max_depth=2,
        max_pages=50,
        output=str(tmp_path / "out" / "scraped.json"),
    )
