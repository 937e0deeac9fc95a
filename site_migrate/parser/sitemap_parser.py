# File: site_migrate/parser/sitemap_parser.py
"""site_migrate.parser.sitemap_parser: classify a sitemap document and pull out its locations."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import List

from lxml import etree

# absolute http(s) URL inside free text
URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+")


class SitemapKind(str, enum.Enum):
    INDEX = "index"
    URLSET = "urlset"
    TEXT = "text"


@dataclass(slots=True)
class SitemapDocument:
    """Parsed sitemap node: nested sitemaps for an index, page URLs otherwise."""

    kind: SitemapKind
    locations: List[str] = field(default_factory=list)


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname.lower()


def _locs(root: etree._Element, parent: str) -> List[str]:
    locs = root.findall(f".//{{*}}{parent}/{{*}}loc")
    return [loc.text.strip() for loc in locs if loc.text and loc.text.strip()]


def parse_sitemap(content: str) -> SitemapDocument:
    """Parse sitemap *content* (XML index, XML urlset or plain text).

    Args:
        content: body of the sitemap response.

    Returns:
        SitemapDocument whose ``locations`` are nested sitemap URLs for an index and
        page URLs for a urlset. Anything else is scanned for absolute http(s) URLs.

    Example:
    ```python
    from site_migrate.parser.sitemap_parser import parse_sitemap

    doc = parse_sitemap(open("sitemap.xml", encoding="utf-8").read())
    print(doc.kind, len(doc.locations))
    ```
    """
    root = None
    if content.strip():
        parser = etree.XMLParser(ns_clean=True, recover=True, resolve_entities=False)
        try:
            root = etree.fromstring(content.encode("utf-8"), parser=parser)
        except etree.XMLSyntaxError:
            root = None

    if root is not None:
        name = _local_name(root.tag)
        if name == "sitemapindex":
            return SitemapDocument(SitemapKind.INDEX, _locs(root, "sitemap"))
        if name == "urlset":
            return SitemapDocument(SitemapKind.URLSET, _locs(root, "url"))

    return SitemapDocument(SitemapKind.TEXT, URL_RE.findall(content))
