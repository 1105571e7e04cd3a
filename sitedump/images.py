"""Image download with noise filtering and content-addressed dedup."""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

from sitedump.fetch import FetchError, fetch
from sitedump.models import ImageAsset

ACCEPTED_IMAGE_TYPES: Dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/avif": ".avif",
    "image/bmp": ".bmp",
    "image/svg+xml": ".svg",
    "image/x-icon": ".ico",
    "image/vnd.microsoft.icon": ".ico",
    "image/tiff": ".tiff",
}
PIL_FORMAT_TYPES: Dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
    "AVIF": "image/avif",
    "BMP": "image/bmp",
    "ICO": "image/x-icon",
    "TIFF": "image/tiff",
}
GENERIC_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})

TRACKING_PATTERNS = (
    "googletagmanager",
    "google-analytics",
    "facebook.com/tr",
    "doubleclick",
    "analytics",
    "tracking",
    "pixel",
    "beacon",
    "1x1",
    "placeholder",
)


def tracking_pattern(url: str) -> Optional[str]:
    lower = url.lower()
    for pattern in TRACKING_PATTERNS:
        if pattern in lower:
            return pattern
    return None


def sniff_image(data: bytes) -> Tuple[Optional[str], Optional[Tuple[int, int]]]:
    """``(mime type, (width, height))`` as read by Pillow, ``(None, None)`` if it cannot tell."""
    try:
        with Image.open(io.BytesIO(data)) as im:
            return PIL_FORMAT_TYPES.get(im.format or ""), im.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None, None


class ImagePipeline:
    """Downloads images once per run and stores each distinct byte string once.

    The registry maps the SHA-256 of the raw bytes to the stored
    :class:`ImageAsset`; the file lives at ``<images_dir>/<sha256><ext>``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        images_dir: Path,
        *,
        semaphore: asyncio.Semaphore,
        timeout: float,
        max_bytes: Optional[int] = None,
        min_bytes: int = 1024,
        min_dimension: int = 16,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.client = client
        self.images_dir = Path(images_dir)
        self.sem = semaphore
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.min_bytes = min_bytes
        self.min_dimension = min_dimension
        self.logger = logger or logging.LoggerAdapter(logging.getLogger("sitedump.images"), extra={"site": "-"})

        self._registry: Dict[str, ImageAsset] = {}
        self._registry_lock = asyncio.Lock()
        self._by_url: Dict[str, Optional[ImageAsset]] = {}
        self._url_locks: Dict[str, asyncio.Lock] = {}
        self.writes = 0

    @property
    def assets(self) -> List[ImageAsset]:
        return list(self._registry.values())

    def markup_rejection(self, url: str, width: Optional[int], height: Optional[int]) -> Optional[str]:
        if url.startswith("data:"):
            return "inline data URI"
        pattern = tracking_pattern(url)
        if pattern:
            return f"tracking pattern {pattern!r}"
        for value in (width, height):
            if value is not None and value < self.min_dimension:
                return f"declared size {width}x{height}"
        return None

    def content_rejection(self, data: bytes, content_type: str) -> Tuple[Optional[str], str]:
        """Byte-level checks. Returns ``(reason or None, effective content type)``."""
        if len(data) < self.min_bytes:
            return f"only {len(data)} bytes", content_type
        sniffed_type, size = sniff_image(data)
        if content_type in GENERIC_TYPES and sniffed_type:
            content_type = sniffed_type
        if content_type not in ACCEPTED_IMAGE_TYPES:
            return f"content type {content_type or 'unknown'!r}", content_type
        if size and (size[0] < self.min_dimension or size[1] < self.min_dimension):
            return f"pixel size {size[0]}x{size[1]}", content_type
        return None, content_type

    async def acquire(self, image_url: str, *, width: Optional[int] = None, height: Optional[int] = None) -> Optional[ImageAsset]:
        """Return the stored asset for ``image_url``, or ``None`` if it failed or was filtered out."""
        reason = self.markup_rejection(image_url, width, height)
        if reason:
            self.logger.debug(f"Skipping image {image_url}: {reason}")
            return None
        lock = self._url_locks.setdefault(image_url, asyncio.Lock())
        async with lock:
            if image_url in self._by_url:
                return self._by_url[image_url]
            asset = await self._download(image_url)
            self._by_url[image_url] = asset
            return asset

    async def _download(self, url: str) -> Optional[ImageAsset]:
        try:
            async with self.sem:
                resp = await fetch(self.client, url, timeout=self.timeout, max_bytes=self.max_bytes)
        except FetchError as e:
            self.logger.warning(f"Image fetch failed for {url}: {e}")
            return None
        content_type = resp.content_type.split(";", 1)[0].strip()
        reason, content_type = self.content_rejection(resp.content, content_type)
        if reason:
            self.logger.debug(f"Skipping image {url}: {reason}")
            return None
        return await self._store(url, resp.content, content_type)

    async def _store(self, url: str, data: bytes, content_type: str) -> Optional[ImageAsset]:
        digest = hashlib.sha256(data).hexdigest()
        async with self._registry_lock:
            existing = self._registry.get(digest)
            if existing is not None:
                self.logger.debug(f"Image {url} duplicates {existing.original_url}")
                return existing
            path = self.images_dir / f"{digest}{ACCEPTED_IMAGE_TYPES[content_type]}"
            try:
                self.images_dir.mkdir(parents=True, exist_ok=True)
                path.write_bytes(data)
            except OSError as e:
                self.logger.exception(f"Failed saving image {url} -> {path}: {e}")
                return None
            asset = ImageAsset(original_url=url, sha256=digest, local_path=str(path), size=len(data))
            self._registry[digest] = asset
            self.writes += 1
            self.logger.info(f"Saved image: {url} -> {path.name}")
            return asset
