# site_migrate/crawler/fetcher.py
"""
Fetcher module: GET one URL and turn the response into a PageData record.

The fetch boundary is where transient failures stop: network errors, timeouts,
redirect loops and undecodable bodies all become a zero record with status 0,
and non-2xx statuses are reported, never raised.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_migrate.config import AuditConfig
from site_migrate.crawler.models import PageData
from site_migrate.parser.html_parser import parse_html
from site_migrate.utils import normalize_url

logger = logging.getLogger("SiteMigrate")

_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
_ACCEPT_LANGUAGE = "en-US,en;q=0.5"


class PageSource(Protocol):
    """Anything that can turn a URL into a PageData without raising."""

    async def fetch(self, url: str) -> PageData: ...


class PageFetcher:
    """Fetches and parses single pages over a shared aiohttp session."""

    def __init__(self, config: AuditConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=config.timeout)

    async def __aenter__(self) -> PageFetcher:
        if self.session is None:
            self.session = ClientSession(
                headers={
                    "User-Agent": self.config.user_agent,
                    "Accept": _ACCEPT,
                    "Accept-Language": _ACCEPT_LANGUAGE,
                },
                raise_for_status=False,
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()
        if self._owns_session:
            self.session = None

    async def fetch(self, url: str) -> PageData:
        """
        Fetch *url* following redirects.

        Returns a populated PageData for HTML responses, a record with only the
        status for anything else, and a zero record (status 0) on failure.
        """
        if not self.session:
            raise RuntimeError("Session not initialized")

        page_id = normalize_url(url)
        try:
            async with self.session.get(
                url,
                allow_redirects=True,
                timeout=self._timeout,
                headers={"User-Agent": self.config.user_agent},
            ) as resp:
                status = resp.status
                final_url = str(resp.url)
                ctype = resp.headers.get("Content-Type", "").lower()
                if "text/html" not in ctype:
                    logger.debug("Fetched %s -> not HTML (%s)", url, ctype or "no content-type")
                    return PageData(url=page_id, status=status, final_url=normalize_url(final_url))
                html = await resp.text(errors="replace")
        except (ClientError, asyncio.TimeoutError, ValueError, LookupError) as exc:
            logger.error("Failed to fetch %s: %s", url, str(exc) or type(exc).__name__)
            return PageData.empty(page_id)

        parsed = parse_html(html, final_url)
        logger.debug("Fetched %s -> %d links found", url, len(parsed.links))
        return PageData(
            url=page_id,
            status=status,
            title=parsed.title,
            description=parsed.description,
            h1=parsed.h1,
            keywords=parsed.keywords,
            canonical=parsed.canonical,
            robots=parsed.robots,
            og_title=parsed.og_title,
            og_description=parsed.og_description,
            og_image=parsed.og_image,
            schemas=frozenset(parsed.schemas),
            links=tuple(parsed.links),
            final_url=normalize_url(final_url),
        )
