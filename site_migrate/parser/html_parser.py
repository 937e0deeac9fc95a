# === FILE: site_migrate/parser/html_parser.py ===
"""HTML parsing for site_migrate.

:func:`parse_html` turns a static HTML document into the SEO-relevant fields the
comparison works on:

* title, meta description / keywords / robots, first ``<h1>``;
* canonical link and the Open-Graph title, description and image;
* structured-data ``@type`` values from every JSON-LD block, including the
  entries of nested ``@graph`` arrays;
* outgoing anchor links, resolved against ``<base href>`` (itself resolved
  against the final URL after redirects) and normalized.

No JavaScript is executed. Broken JSON-LD blocks and unresolvable hrefs are
skipped silently.
"""
from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_migrate.utils import normalize_url

__all__: Sequence[str] = ("ParsedPage", "parse_html", "extract_schema_types")


@dataclass(slots=True)
class ParsedPage:
    """Fields extracted from one HTML document."""

    title: str = ""
    description: str = ""
    h1: str = ""
    keywords: str = ""
    canonical: str = ""
    robots: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    schemas: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _attr(tag: Optional[Tag], name: str) -> str:
    if not isinstance(tag, Tag):
        return ""
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value.strip() if isinstance(value, str) else ""


def _meta(soup: BeautifulSoup, key: str, value: str) -> str:
    return _attr(soup.find("meta", attrs={key: value}), "content")


def extract_schema_types(data: Any) -> list[str]:
    """Collect ``@type`` values from a parsed JSON-LD document."""
    if not data:
        return []
    if isinstance(data, list):
        return [t for item in data for t in extract_schema_types(item)]
    if not isinstance(data, dict):
        return []

    types: list[str] = []
    declared = data.get("@type")
    if isinstance(declared, list):
        types.extend(t for t in declared if isinstance(t, str))
    elif isinstance(declared, str):
        types.append(declared)
    graph = data.get("@graph")
    if isinstance(graph, list):
        types.extend(extract_schema_types(graph))
    return types


def _schemas(soup: BeautifulSoup) -> list[str]:
    found: list[str] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.get_text() or "{}"
        try:
            payload = json.loads(raw)
        except ValueError:
            continue
        found.extend(extract_schema_types(payload))
    # unique, first-seen order
    return list(dict.fromkeys(found))


def _links(soup: BeautifulSoup, final_url: str) -> list[str]:
    base_href = _attr(soup.find("base"), "href")
    try:
        base_url = urljoin(final_url, base_href) if base_href else final_url
    except ValueError:
        base_url = final_url

    links: list[str] = []
    for tag in soup.find_all("a", href=True):
        href = _attr(tag, "href")
        if not href:
            continue
        try:
            absolute = urljoin(base_url, href)
        except ValueError:
            continue
        links.append(normalize_url(absolute))
    return links


# ---------------------------------------------------------------------------
# Public function
# ---------------------------------------------------------------------------


def parse_html(html: str, final_url: str) -> ParsedPage:
    """Parse *html* fetched from *final_url* into a :class:`ParsedPage`."""
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    h1_tag = soup.find("h1")
    canonical_tag = soup.find("link", rel="canonical")

    return ParsedPage(
        title=title_tag.get_text().strip() if title_tag else "",
        description=_meta(soup, "name", "description"),
        h1=h1_tag.get_text().strip() if h1_tag else "",
        keywords=_meta(soup, "name", "keywords"),
        canonical=_attr(canonical_tag, "href"),
        robots=_meta(soup, "name", "robots"),
        og_title=_meta(soup, "property", "og:title"),
        og_description=_meta(soup, "property", "og:description"),
        og_image=_meta(soup, "property", "og:image"),
        schemas=_schemas(soup),
        links=_links(soup, final_url),
    )
