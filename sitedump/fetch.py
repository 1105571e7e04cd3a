"""Single-shot HTTP GET with typed failures."""

from __future__ import annotations

import dataclasses
import enum
from typing import Optional

import httpx

from sitedump.config import Config


class FetchErrorKind(str, enum.Enum):
    TIMEOUT = "timeout"
    CONNECTION_FAILED = "connection_failed"
    NON_SUCCESS_STATUS = "non_success_status"
    TOO_LARGE = "too_large"
    INVALID_URL = "invalid_url"


class FetchError(Exception):
    def __init__(self, kind: FetchErrorKind, url: str, status: Optional[int] = None, detail: str = "") -> None:
        self.kind = kind
        self.url = url
        self.status = status
        self.detail = detail
        super().__init__(f"{self.reason}: {detail}" if detail else self.reason)

    @property
    def reason(self) -> str:
        """Short grouping key for summaries, e.g. ``"HTTP 404"`` or ``"timeout"``."""
        if self.kind is FetchErrorKind.NON_SUCCESS_STATUS:
            return f"HTTP {self.status}"
        return self.kind.value


@dataclasses.dataclass(frozen=True)
class FetchResponse:
    url: str
    final_url: str
    status: int
    content_type: str
    content: bytes
    encoding: Optional[str] = None

    @property
    def text(self) -> str:
        try:
            return self.content.decode(self.encoding or "utf-8")
        except (UnicodeDecodeError, LookupError):
            return self.content.decode("utf-8", errors="replace")


def build_client(cfg: Config) -> httpx.AsyncClient:
    headers = {
        "User-Agent": cfg.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/*;q=0.8,*/*;q=0.5",
        "Accept-Language": "en;q=0.7, *;q=0.5",
    }
    limits = httpx.Limits(max_keepalive_connections=20, max_connections=max(cfg.concurrency, 10))
    timeout = httpx.Timeout(cfg.timeout)
    return httpx.AsyncClient(headers=headers, limits=limits, timeout=timeout, follow_redirects=True)


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float,
    max_bytes: Optional[int] = None,
) -> FetchResponse:
    """GET ``url`` once. Raises :class:`FetchError` on any failure; never retries."""
    try:
        async with client.stream("GET", url, timeout=timeout, follow_redirects=True) as resp:
            if not resp.is_success:
                raise FetchError(FetchErrorKind.NON_SUCCESS_STATUS, url, status=resp.status_code)
            declared = resp.headers.get("Content-Length", "")
            if max_bytes is not None and declared.isdigit() and int(declared) > max_bytes:
                raise FetchError(FetchErrorKind.TOO_LARGE, url, status=resp.status_code, detail=f"{declared} bytes")
            chunks = []
            received = 0
            async for chunk in resp.aiter_bytes():
                received += len(chunk)
                if max_bytes is not None and received > max_bytes:
                    raise FetchError(FetchErrorKind.TOO_LARGE, url, status=resp.status_code, detail=f">{max_bytes} bytes")
                chunks.append(chunk)
            return FetchResponse(
                url=url,
                final_url=str(resp.url),
                status=resp.status_code,
                content_type=resp.headers.get("Content-Type", "").lower(),
                content=b"".join(chunks),
                encoding=resp.charset_encoding,
            )
    except httpx.TimeoutException as e:
        raise FetchError(FetchErrorKind.TIMEOUT, url, detail=str(e)) from e
    except httpx.InvalidURL as e:
        raise FetchError(FetchErrorKind.INVALID_URL, url, detail=str(e)) from e
    except httpx.UnsupportedProtocol as e:
        raise FetchError(FetchErrorKind.INVALID_URL, url, detail=str(e)) from e
    except httpx.HTTPError as e:
        raise FetchError(FetchErrorKind.CONNECTION_FAILED, url, detail=str(e)) from e
