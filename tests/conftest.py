# File: tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin

import pytest
from aiohttp import web

from site_migrate.config import AuditConfig
from site_migrate.crawler.models import PageData
from site_migrate.utils import normalize_url


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


def page(url: str, *links: str, status: int = 200, **fields) -> PageData:
    """HTML page record linking to *links* (resolved against *url*)."""
    absolute = [normalize_url(urljoin(url, link)) for link in links]
    return PageData(url=normalize_url(url), status=status, links=tuple(absolute), **fields)


class FakeFetcher:
    """In-memory PageSource: serves prepared pages, 404 for anything else.

    Records every call and the highest number of fetches in flight at once.
    """

    def __init__(self, pages: Iterable[PageData] = (), delay: float = 0.0) -> None:
        self.pages: Dict[str, PageData] = {p.url: p for p in pages}
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    def add(self, *pages: PageData) -> None:
        for p in pages:
            self.pages[p.url] = p

    async def fetch(self, url: str) -> PageData:
        key = normalize_url(url)
        self.calls.append(key)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            return self.pages.get(key) or PageData.empty(key, 404)
        finally:
            self.active -= 1


@pytest.fixture()
def config() -> AuditConfig:
    """Small, fast configuration for tests."""
    return AuditConfig(
        max_pages=100,
        concurrency=4,
        timeout=2.0,
        sitemap_timeout=2.0,
        user_agent="TestAgent/1.0",
    )


def build_sites(old_paths: Iterable[str], new_paths: Iterable[str], delay: float = 0.0) -> FakeFetcher:
    """Two fake sites whose roots link to every listed path."""
    old_paths, new_paths = list(old_paths), list(new_paths)
    fetcher = FakeFetcher(delay=delay)
    fetcher.add(page("http://old.test", *old_paths, title="Home"))
    fetcher.add(*(page(f"http://old.test{p}", title=f"Page {p}") for p in old_paths))
    fetcher.add(page("http://new.test", *new_paths, title="Home"))
    fetcher.add(*(page(f"http://new.test{p}", title=f"Page {p}") for p in new_paths))
    return fetcher


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


def html(body: str = "", head: str = "", title: Optional[str] = None) -> str:
    title_tag = f"<title>{title}</title>" if title is not None else ""
    return f"<html><head>{title_tag}{head}</head><body>{body}</body></html>"
