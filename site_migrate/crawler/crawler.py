# === FILE: site_migrate/crawler/crawler.py ===
"""Bounded-concurrency breadth-first crawl of one site.

The scheduler keeps a :class:`CrawlFrontier` per run. URLs are dispatched in FIFO
order, at most ``concurrency`` fetches are in flight, and a URL is marked visited
exactly once, when it is dispatched. Links are followed only while their base
domain (hostname without ``www.``) equals the one of the start URL.

Cancellation is cooperative: the predicate is polled before each dispatch and
before each callback. In-flight fetches are never aborted; their pages are dropped.
"""
from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Deque, Optional, Set, Union

from site_migrate.cancellation import CancelCheck, never_cancelled
from site_migrate.crawler.fetcher import PageSource
from site_migrate.crawler.models import PageData
from site_migrate.utils import is_in_scope, normalize_url, site_domain

__all__ = ("CrawlScheduler", "CrawlFrontier", "CrawlState", "CrawlStats", "PageCallback")

PageCallback = Callable[[PageData], Union[None, Awaitable[None]]]

logger = logging.getLogger("SiteMigrate")

_PROGRESS_EVERY = 50


class CrawlState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    MAX_PAGES_REACHED = "max_pages_reached"


@dataclass
class CrawlFrontier:
    """Traversal state of one crawl. ``queued`` always contains ``visited``."""

    state: CrawlState = CrawlState.IDLE
    visited: Set[str] = field(default_factory=set)
    queued: Set[str] = field(default_factory=set)
    pending: Deque[str] = field(default_factory=deque)
    active: Set[asyncio.Task] = field(default_factory=set)

    def enqueue(self, url: str) -> bool:
        if url in self.queued:
            return False
        self.queued.add(url)
        self.pending.append(url)
        return True

    def next_url(self) -> str:
        url = self.pending.popleft()
        self.visited.add(url)
        return url


@dataclass(slots=True)
class CrawlStats:
    start_url: str
    state: CrawlState
    visited: int
    elapsed: float


class CrawlScheduler:
    """Breadth-first crawler over a :class:`PageSource` with a bounded worker pool."""

    def __init__(self, fetcher: PageSource, concurrency: int = 10) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.fetcher = fetcher
        self.concurrency = concurrency

    async def crawl(
        self,
        start_url: str,
        max_pages: int,
        on_page_found: Optional[PageCallback] = None,
        is_cancelled: CancelCheck = never_cancelled,
        concurrency: Optional[int] = None,
    ) -> CrawlStats:
        """Crawl from *start_url* until the domain, the page budget or the caller runs out.

        ``on_page_found`` may be a plain function or a coroutine function; it is
        awaited inside the worker, before the page's links are queued.
        """
        limit = concurrency or self.concurrency
        root = normalize_url(start_url)
        domain = site_domain(root)

        frontier = CrawlFrontier()
        frontier.enqueue(root)
        frontier.state = CrawlState.RUNNING
        started = time.monotonic()
        logger.info("Crawl started: %s (max %d pages, concurrency %d)", root, max_pages, limit)

        try:
            while (frontier.pending or frontier.active) and len(frontier.visited) < max_pages:
                if is_cancelled():
                    logger.warning("Crawl cancelled for %s. Stopping...", domain)
                    break

                while (
                    frontier.pending
                    and len(frontier.active) < limit
                    and len(frontier.visited) < max_pages
                    and not is_cancelled()
                ):
                    url = frontier.next_url()
                    if len(frontier.visited) % _PROGRESS_EVERY == 0:
                        logger.info(
                            "Crawling %s: %d/%d pages found. Queue size: %d. Active: %d",
                            domain,
                            len(frontier.visited),
                            max_pages,
                            len(frontier.pending),
                            len(frontier.active),
                        )
                    task = asyncio.create_task(
                        self._process(url, frontier, domain, on_page_found, is_cancelled)
                    )
                    frontier.active.add(task)

                if frontier.active:
                    done, _ = await asyncio.wait(
                        frontier.active, return_when=asyncio.FIRST_COMPLETED
                    )
                    frontier.active.difference_update(done)
        except asyncio.CancelledError:
            for task in frontier.active:
                task.cancel()
            await asyncio.gather(*frontier.active, return_exceptions=True)
            raise

        # no more dispatch; let in-flight pages finish
        if frontier.active:
            await asyncio.gather(*frontier.active, return_exceptions=True)
            frontier.active.clear()

        if is_cancelled():
            frontier.state = CrawlState.CANCELLED
        elif len(frontier.visited) >= max_pages:
            frontier.state = CrawlState.MAX_PAGES_REACHED
        else:
            frontier.state = CrawlState.EXHAUSTED

        elapsed = time.monotonic() - started
        logger.info(
            "Crawl finished for %s (%s). Total pages processed: %d in %.2f s",
            domain,
            frontier.state.value,
            len(frontier.visited),
            elapsed,
        )
        return CrawlStats(root, frontier.state, len(frontier.visited), elapsed)

    async def _process(
        self,
        url: str,
        frontier: CrawlFrontier,
        domain: str,
        on_page_found: Optional[PageCallback],
        is_cancelled: CancelCheck,
    ) -> None:
        try:
            page = await self.fetcher.fetch(url)
            if is_cancelled():
                return

            if on_page_found is not None:
                result = on_page_found(page)
                if inspect.isawaitable(result):
                    await result

            for raw in page.links:
                link = normalize_url(raw)
                if link not in frontier.queued and is_in_scope(link, domain):
                    frontier.enqueue(link)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Error processing %s: %s", url, exc)
