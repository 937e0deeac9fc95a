# File: site_migrate/comparison.py
"""site_migrate.comparison: cross-site matching and SEO diff.

The old site drives the comparison: every old page found by its crawl is mapped
to the same path on the new site, fetched there and diffed right away. The
new-site crawl runs alongside and only records pages, so that new pages with no
old counterpart (orphans) can be reported once both crawls are done.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from site_migrate.aggregator import ComparisonResult, ComparisonStatus
from site_migrate.cancellation import CancelCheck, never_cancelled
from site_migrate.config import AuditConfig
from site_migrate.crawler.crawler import CrawlScheduler
from site_migrate.crawler.fetcher import PageSource
from site_migrate.crawler.models import PageData
from site_migrate.utils import map_to_site, url_path

__all__ = ("ComparisonEngine", "diff_pages", "classify_page", "ORPHAN_ISSUE", "MISSING_ISSUE")

logger = logging.getLogger("SiteMigrate")

MISSING_ISSUE = "URL missing on new site"
ORPHAN_ISSUE = "Page found on new site but not on old site"

# (attribute, label) pairs compared field by field
_TEXT_RULES: Tuple[Tuple[str, str], ...] = (
    ("title", "Title"),
    ("description", "Description"),
    ("keywords", "Keywords"),
    ("og_title", "OG Title"),
    ("og_description", "OG Description"),
    ("og_image", "OG Image"),
)
_H1_RULE = ("h1", "H1")

_DONE = object()


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _is_absolute(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def _canonical_issue(old_canonical: str, new_canonical: str) -> Optional[str]:
    if not old_canonical or old_canonical == new_canonical:
        return None
    if _is_absolute(old_canonical) and _is_absolute(new_canonical):
        if urlsplit(old_canonical).path != urlsplit(new_canonical).path:
            return "Canonical path mismatch"
        return None
    return "Canonical mismatch"


def _schema_issue(old_schemas: frozenset, new_schemas: frozenset) -> Optional[str]:
    if not old_schemas or old_schemas == new_schemas:
        return None
    missing = sorted(old_schemas - new_schemas)
    if missing:
        return f"Missing Schema: {', '.join(missing)}"
    return "Schema mismatch"


def diff_pages(old: PageData, new: PageData, expected_url: str) -> List[str]:
    """SEO findings between an old page and its new-site counterpart (new status 200).

    A field that is empty on the old page is never reported, whatever the new page
    holds. ``noindex`` on the new page is always reported.
    """
    issues: List[str] = []

    final_path = url_path(new.final_url)
    if final_path != url_path(expected_url):
        issues.append(f"Redirected to {final_path or '/'}")

    for attr, label in _TEXT_RULES:
        old_value = _clean(getattr(old, attr))
        if old_value and old_value != _clean(getattr(new, attr)):
            issues.append(f"{label} mismatch")

    schema_issue = _schema_issue(old.schemas, new.schemas)
    if schema_issue:
        issues.append(schema_issue)

    old_h1 = _clean(old.h1)
    if old_h1 and old_h1 != _clean(new.h1):
        issues.append("H1 mismatch")

    canonical_issue = _canonical_issue(_clean(old.canonical), _clean(new.canonical))
    if canonical_issue:
        issues.append(canonical_issue)

    if "noindex" in new.robots.lower():
        issues.append("New page has noindex")

    for attr, label in _TEXT_RULES + (_H1_RULE,):
        if _clean(getattr(old, attr)) and not _clean(getattr(new, attr)):
            issues.append(f"Missing {label} on New")

    return issues


def classify_page(
    old: PageData, new: Optional[PageData], expected_url: str
) -> Tuple[ComparisonStatus, List[str]]:
    """Status and issues of one old page given what was found at *expected_url*."""
    if new is None or new.status in (0, 404):
        return ComparisonStatus.MISSING, [MISSING_ISSUE]
    if 300 <= new.status < 400:
        return ComparisonStatus.ERROR, [f"Redirected (Status {new.status})"]
    if new.status != 200:
        return ComparisonStatus.ERROR, [f"New site returns status {new.status}"]
    return ComparisonStatus.MATCHED, diff_pages(old, new, expected_url)


class ComparisonEngine:
    """Runs the old-site and new-site crawls of one comparison and yields results."""

    def __init__(self, fetcher: PageSource, config: AuditConfig) -> None:
        self.fetcher = fetcher
        self.config = config

    async def check_single_page(self, old_page: PageData, new_site_base: str) -> ComparisonResult:
        """Fetch the new-site page at the old page's path and diff the two."""
        expected_url = map_to_site(old_page.url, new_site_base)
        new_page: Optional[PageData]
        try:
            new_page = await self.fetcher.fetch(expected_url)
        except Exception as exc:
            # an unreachable new page is reported, not dropped
            logger.warning("Failed to fetch %s: %s", expected_url, str(exc) or type(exc).__name__)
            new_page = None
        status, issues = classify_page(old_page, new_page, expected_url)
        return ComparisonResult(
            old_url=old_page.url,
            new_url=expected_url,
            status=status,
            old_data=old_page,
            new_data=new_page if new_page and new_page.status else None,
            issues=issues,
        )

    async def compare(
        self,
        old_site_url: str,
        new_site_url: str,
        is_cancelled: CancelCheck = never_cancelled,
    ) -> AsyncIterator[ComparisonResult]:
        """
        Yield results as old pages are matched, then the orphaned new pages.

        Nothing is yielded once ``is_cancelled()`` is true, and orphans are not
        computed for a cancelled run. A crawl failure is re-raised from the iterator.
        """
        old_pages: Dict[str, PageData] = {}
        new_pages: Dict[str, PageData] = {}
        queue: asyncio.Queue = asyncio.Queue()

        async def on_old_page(page: PageData) -> None:
            if is_cancelled():
                return
            old_pages[page.url] = page
            result = await self.check_single_page(page, new_site_url)
            if not is_cancelled():
                queue.put_nowait(result)

        def on_new_page(page: PageData) -> None:
            if not is_cancelled():
                new_pages[page.url] = page

        async def run_crawls() -> None:
            crawls = [
                asyncio.create_task(
                    CrawlScheduler(self.fetcher, self.config.concurrency).crawl(
                        old_site_url, self.config.max_pages, on_old_page, is_cancelled
                    )
                ),
                asyncio.create_task(
                    CrawlScheduler(self.fetcher, self.config.concurrency).crawl(
                        new_site_url, self.config.max_pages, on_new_page, is_cancelled
                    )
                ),
            ]
            try:
                await asyncio.gather(*crawls)
            except BaseException:
                for task in crawls:
                    task.cancel()
                await asyncio.gather(*crawls, return_exceptions=True)
                raise
            finally:
                queue.put_nowait(_DONE)

        runner = asyncio.create_task(run_crawls())
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                if is_cancelled():
                    continue
                yield item

            await runner
            if is_cancelled():
                logger.info("Comparison %s -> %s cancelled", old_site_url, new_site_url)
                return

            for result in self._orphans(old_pages, new_pages, old_site_url, new_site_url):
                if is_cancelled():
                    return
                yield result
        finally:
            if not runner.done():
                if not is_cancelled():
                    runner.cancel()
                await asyncio.gather(runner, return_exceptions=True)

    def _orphans(
        self,
        old_pages: Dict[str, PageData],
        new_pages: Dict[str, PageData],
        old_site_url: str,
        new_site_url: str,
    ) -> List[ComparisonResult]:
        matched_new = {map_to_site(url, new_site_url) for url in old_pages}
        orphans: List[ComparisonResult] = []
        for new_url, new_page in new_pages.items():
            if new_url in matched_new:
                continue
            # second check through the inverse mapping
            expected_old = map_to_site(new_url, old_site_url)
            if expected_old in old_pages:
                logger.debug(
                    "Path mappings disagree: %s maps back to visited %s", new_url, expected_old
                )
                continue
            orphans.append(
                ComparisonResult(
                    old_url=expected_old,
                    new_url=new_url,
                    status=ComparisonStatus.NEW,
                    old_data=None,
                    new_data=new_page,
                    issues=[ORPHAN_ISSUE],
                )
            )
        logger.info("Found %d pages only present on %s", len(orphans), new_site_url)
        return orphans
