"""URL helpers shared by the crawler, the extractor and the image pipeline."""

from __future__ import annotations

import hashlib
import re
from typing import Optional, Tuple
from urllib.parse import parse_qsl, urldefrag, urlencode, urljoin, urlsplit, urlunsplit

import tldextract
from slugify import slugify

# Bundled public suffix snapshot only; never reach out to the network for it.
_TLD_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

SITEMAP_HINT_RE = re.compile(r"(?:\.xml(?:\.gz)?$|sitemap)", re.I)


def sha1_short(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8", errors="ignore")).hexdigest()[:10]


def file_safe_slug(text: str, maxlen: int = 80) -> str:
    s = slugify(text, max_length=maxlen, allow_unicode=False).strip("-_.")
    return s or sha1_short(text)


def normalize_url(url: str, base: Optional[str] = None, sort_query: bool = True) -> str:
    """Canonical form used for frontier dedup.

    ``https://Example.com:443/a/#top`` and ``https://example.com/a`` both
    normalize to ``https://example.com/a``.
    """
    if base:
        url = urljoin(base, url)
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    if scheme not in ("http", "https"):
        return url
    if "@" in netloc:
        netloc = netloc.split("@", 1)[-1]
    if (scheme == "http" and netloc.endswith(":80")) or (scheme == "https" and netloc.endswith(":443")):
        netloc = netloc.rsplit(":", 1)[0]
    path = parts.path or "/"
    path = re.sub(r"/{2,}", "/", path)
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/")
    query = parts.query
    if sort_query and query:
        q = parse_qsl(query, keep_blank_values=True)
        q.sort()
        query = urlencode(q, doseq=True)
    return urlunsplit((scheme, netloc, path, query, ""))


def absolute_url(href: Optional[str], base: str) -> Optional[str]:
    """Resolve ``href`` against ``base``; ``None`` for empty or non-http(s) targets."""
    if not href:
        return None
    href = href.strip()
    if not href:
        return None
    try:
        joined, _ = urldefrag(urljoin(base, href))
    except ValueError:
        return None
    if urlsplit(joined).scheme not in ("http", "https"):
        return None
    return joined


def is_http_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.hostname)


def looks_like_sitemap(url: str) -> bool:
    return bool(SITEMAP_HINT_RE.search(urlsplit(url).path))


def get_registrable_domain(url: str) -> Tuple[str, str, str]:
    ext = _TLD_EXTRACT(url)
    return ext.subdomain, ext.domain, ext.suffix


def in_same_scope(url: str, site_root: str, include_subdomains: bool = True) -> bool:
    """True when ``url`` belongs to the site rooted at ``site_root``.

    With ``include_subdomains`` any host under the same registrable domain
    matches (``blog.example.com`` for ``example.com``); otherwise the host
    must be identical.
    """
    try:
        if urlsplit(url).scheme not in ("http", "https"):
            return False
        s_sub, s_dom, s_suf = get_registrable_domain(site_root)
        u_sub, u_dom, u_suf = get_registrable_domain(url)
        if not s_suf:
            # localhost, bare IPs and the like: fall back to host equality
            return (urlsplit(url).hostname or "") == (urlsplit(site_root).hostname or "")
        if (s_dom, s_suf) != (u_dom, u_suf):
            return False
        if include_subdomains:
            return True
        return s_sub == u_sub
    except ValueError:
        return False


def derive_site_slug(site_url: str) -> str:
    netloc = urlsplit(site_url).netloc or site_url
    _, dom, suf = get_registrable_domain(site_url)
    base = f"{dom}.{suf}" if dom and suf else netloc
    slug = file_safe_slug(base, maxlen=80)
    return slug or sha1_short(site_url)
