# site_migrate/crawler/sitemap.py
"""
Sitemap resolver: expands sitemap-index trees into a bounded, deduplicated
sequence of page URLs.

Traversal uses an explicit stack of ``(url, depth)`` pairs. Nested sitemaps are
visited in document order, a node at ``depth >= max_depth`` is skipped, and the
page ceiling is checked before every node and every emitted URL. A sitemap that
was already expanded is never fetched twice, so reference cycles terminate.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, List, Optional, Set, Tuple, Union

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_migrate.config import AuditConfig
from site_migrate.parser.sitemap_parser import SitemapKind, parse_sitemap

logger = logging.getLogger("SiteMigrate")

UrlCallback = Callable[[str, int], Union[None, Awaitable[None]]]


class SitemapResolver:
    """Resolves sitemap URLs over an aiohttp session."""

    def __init__(self, config: AuditConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=config.sitemap_timeout)

    async def __aenter__(self) -> SitemapResolver:
        if self.session is None:
            self.session = ClientSession(
                headers={"User-Agent": self.config.sitemap_user_agent},
                raise_for_status=False,
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
        if self._owns_session:
            self.session = None

    async def _fetch_text(self, url: str) -> str:
        if not self.session:
            raise RuntimeError("Session not initialized")
        async with self.session.get(url, timeout=self._timeout, allow_redirects=True) as resp:
            resp.raise_for_status()
            return await resp.text(errors="replace")

    async def resolve_streaming(
        self,
        sitemap_url: str,
        on_url_found: UrlCallback,
        max_depth: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> int:
        """
        Walk the sitemap tree rooted at *sitemap_url*, calling ``on_url_found(url, ordinal)``
        for every new page URL in discovery order. The callback may be a coroutine function.

        Returns the number of URLs reported.
        """
        depth_limit = self.config.sitemap_max_depth if max_depth is None else max_depth
        page_limit = self.config.max_pages if max_pages is None else max_pages

        seen: Set[str] = set()
        expanded: Set[str] = set()
        stack: List[Tuple[str, int]] = [(sitemap_url, 0)]
        emitted = 0

        while stack and emitted < page_limit:
            node, depth = stack.pop()
            if depth >= depth_limit or node in expanded:
                continue
            expanded.add(node)

            try:
                doc = parse_sitemap(await self._fetch_text(node))
            except (ClientError, asyncio.TimeoutError, ValueError, LookupError) as exc:
                logger.error("Failed to parse sitemap %s: %s", node, str(exc) or type(exc).__name__)
                continue

            if doc.kind is SitemapKind.INDEX:
                logger.debug("Sitemap index %s -> %d nested sitemaps", node, len(doc.locations))
                # reversed so that the first nested sitemap is popped first
                stack.extend((child, depth + 1) for child in reversed(doc.locations))
                continue

            for loc in doc.locations:
                if emitted >= page_limit:
                    break
                if loc in seen:
                    continue
                seen.add(loc)
                emitted += 1
                result = on_url_found(loc, emitted)
                if inspect.isawaitable(result):
                    await result

        logger.info("Sitemap %s resolved to %d URLs", sitemap_url, emitted)
        return emitted

    async def resolve(
        self,
        sitemap_url: str,
        max_depth: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> List[str]:
        """Collect the URLs of :meth:`resolve_streaming` into a list."""
        urls: List[str] = []
        await self.resolve_streaming(
            sitemap_url, lambda url, _ordinal: urls.append(url), max_depth, max_pages
        )
        return urls

    async def count(self, sitemap_url: str, max_depth: Optional[int] = None) -> int:
        """Number of distinct page URLs under *sitemap_url*, capped by ``max_pages``."""
        return await self.resolve_streaming(sitemap_url, lambda _url, _ordinal: None, max_depth)
