# File: site_migrate/utils.py
"""site_migrate.utils: URL identity, domain scoping and cache-key helpers."""

from __future__ import annotations

import base64
from typing import Optional, Sequence
from urllib.parse import urljoin, urlsplit, urlunsplit

__all__: Sequence[str] = (
    "normalize_url",
    "base_domain",
    "site_domain",
    "relative_path",
    "map_to_site",
    "url_path",
    "is_in_scope",
    "url_pair_key",
    "report_id_key",
)

_CRAWLABLE_SCHEMES = ("http", "https")


def normalize_url(url: str) -> str:
    """Canonical identity of a URL: fragment removed, trailing slash stripped.

    Scheme and host are lower-cased. Anything that is not an absolute URL is
    returned unchanged; the function never raises.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url

    normalized = urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path, parts.query, "")
    )
    if len(normalized) > 1 and normalized.endswith("/"):
        normalized = normalized.rstrip("/") or "/"
    return normalized


def base_domain(hostname: str) -> str:
    """Hostname with a leading ``www.`` removed."""
    hostname = hostname.lower()
    return hostname[4:] if hostname.startswith("www.") else hostname


def site_domain(url: str) -> str:
    """Base domain of *url*; raises ValueError if it has no hostname."""
    host = urlsplit(url).hostname
    if not host:
        raise ValueError(f"URL has no hostname: {url!r}")
    return base_domain(host)


def relative_path(url: str) -> str:
    """The part of *url* after its origin (path and query)."""
    parts = urlsplit(url)
    return urlunsplit(("", "", parts.path, parts.query, ""))


def map_to_site(url: str, site_base: str) -> str:
    """Re-home *url* under *site_base*, keeping its path and query."""
    rel = relative_path(url)
    return normalize_url(urljoin(site_base, rel) if rel else site_base)


def url_path(url: str) -> str:
    """Path component without a trailing slash (``""`` for the root)."""
    return urlsplit(url).path.rstrip("/")


def is_in_scope(link: str, domain: str) -> bool:
    """True for http(s) links whose base domain is *domain*. Malformed links are out."""
    try:
        parts = urlsplit(link)
        host: Optional[str] = parts.hostname
    except ValueError:
        return False
    if parts.scheme not in _CRAWLABLE_SCHEMES or not host:
        return False
    return base_domain(host) == domain


def _trim_site(url: str) -> str:
    url = url.strip()
    return url[:-1] if url.endswith("/") else url


def url_pair_key(old_site_url: str, new_site_url: str) -> str:
    """Cache key of a (old site, new site) pair, independent of the project id."""
    raw = f"{_trim_site(old_site_url)}|{_trim_site(new_site_url)}"
    return "report:urls:" + base64.b64encode(raw.encode("utf-8")).decode("ascii")


def report_id_key(project_id: str) -> str:
    """Cache key of the last report of one project."""
    return f"report:{project_id}"

