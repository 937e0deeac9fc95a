# File: site_migrate/engine.py
"""site_migrate.engine: cache-aware streaming of comparison results.

:meth:`StreamOrchestrator.stream` returns a :class:`ComparisonStream`, an owned
handle that yields ``result`` events followed by exactly one ``complete`` event, or
a single ``error`` event. Cancelling the handle (explicitly or by leaving its
``async with`` block early) flips the run's own cancellation token; a cancelled run
emits nothing more and caches nothing.
"""

from __future__ import annotations

from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from site_migrate.aggregator import ComparisonResult, ProjectReport, build_report
from site_migrate.cache import Cache
from site_migrate.cancellation import CancellationToken
from site_migrate.comparison import ComparisonEngine
from site_migrate.config import AuditConfig
from site_migrate.errors import CacheUnavailableError, SiteMigrateError
from site_migrate.logger import logger
from site_migrate.projects import Project, ProjectStore
from site_migrate.utils import report_id_key, url_pair_key

__all__ = [
    "ResultEvent",
    "CompleteEvent",
    "ErrorEvent",
    "StreamEvent",
    "ComparisonStream",
    "StreamOrchestrator",
]


@dataclass(frozen=True, slots=True)
class ResultEvent:
    result: ComparisonResult
    type: str = field(default="result", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "result": self.result.to_dict()}


@dataclass(frozen=True, slots=True)
class CompleteEvent:
    type: str = field(default="complete", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    message: str
    type: str = field(default="error", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "message": self.message}


StreamEvent = Union[ResultEvent, CompleteEvent, ErrorEvent]


class ComparisonStream:
    """Single-use, cancellable sequence of events for one project."""

    def __init__(
        self,
        project_id: str,
        source: Callable[[str, CancellationToken], AsyncIterator[StreamEvent]],
    ) -> None:
        self.project_id = project_id
        self.token = CancellationToken()
        self._events = source(project_id, self.token)
        self.finished = False

    def cancel(self, reason: str = "subscriber disconnected") -> None:
        if not self.finished and not self.token.cancelled:
            logger.info("Client disconnected for project %s. Stopping crawl.", self.project_id)
        self.token.cancel(reason)

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def __aiter__(self) -> ComparisonStream:
        return self

    async def __anext__(self) -> StreamEvent:
        try:
            event = await self._events.__anext__()
        except StopAsyncIteration:
            self.finished = True
            raise
        if not isinstance(event, ResultEvent):
            self.finished = True
        return event

    async def aclose(self) -> None:
        await self._events.aclose()

    async def __aenter__(self) -> ComparisonStream:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.finished:
            self.cancel()
        await self.aclose()


class StreamOrchestrator:
    """Replays cached reports or runs live comparisons, caching what completes."""

    def __init__(
        self,
        projects: ProjectStore,
        cache: Cache,
        engine: ComparisonEngine,
        config: AuditConfig,
    ) -> None:
        self.projects = projects
        self.cache = cache
        self.engine = engine
        self.config = config

    def stream(self, project_id: str) -> ComparisonStream:
        return ComparisonStream(project_id, self._events)

    # ------------------------------------------------------------------ cache

    async def _cache_get(self, key: str) -> Optional[ProjectReport]:
        try:
            raw = await self.cache.get(key)
        except CacheUnavailableError as exc:
            logger.error("Redis cache check failed: %s", exc)
            return None
        if raw is None:
            return None
        try:
            return ProjectReport.from_json(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable cached report %s: %s", key, exc)
            return None

    async def _persist(self, project: Project, report: ProjectReport) -> None:
        payload = report.json()
        ttl = self.config.cache_ttl
        for key in (report_id_key(project.id), url_pair_key(project.old_site_url, project.new_site_url)):
            try:
                await self.cache.set(key, payload, ttl)
            except CacheUnavailableError as exc:
                logger.error("Could not cache report under %s: %s", key, exc)
                continue
            logger.info("Saved report for project %s under %s (TTL: %ss)", project.id, key, ttl)

    # ----------------------------------------------------------------- events

    async def _events(
        self, project_id: str, token: CancellationToken
    ) -> AsyncIterator[StreamEvent]:
        try:
            project = self.projects.get(project_id)
        except SiteMigrateError as exc:
            logger.error("Project not found during stream init: %s", exc)
            yield ErrorEvent(str(exc))
            return

        cached = await self._cache_get(url_pair_key(project.old_site_url, project.new_site_url))
        if cached is not None:
            logger.info("Cache hit for URL pair (project %s). Replaying results.", project_id)
            for result in cached.results:
                if token.cancelled:
                    return
                yield ResultEvent(result)
            yield CompleteEvent()
            return

        logger.info("Cache miss for URL pair (project %s). Starting live crawl.", project_id)
        results: List[ComparisonResult] = []
        try:
            async with aclosing(
                self.engine.compare(project.old_site_url, project.new_site_url, token)
            ) as live:
                async for result in live:
                    if token.cancelled:
                        break
                    results.append(result)
                    yield ResultEvent(result)
        except Exception as exc:
            if not token.cancelled:
                logger.error("Comparison failed for project %s: %s", project_id, exc)
                yield ErrorEvent(str(exc) or type(exc).__name__)
            return

        if token.cancelled:
            logger.info("Crawl for %s was cancelled. Skipping finalization.", project_id)
            return

        await self._persist(project, build_report(project, results))
        yield CompleteEvent()

    # ----------------------------------------------------------------- report

    async def run_comparison(self, project_id: str) -> ProjectReport:
        """Cached report for the project, or a freshly streamed one."""
        project = self.projects.get(project_id)
        cached = await self._cache_get(url_pair_key(project.old_site_url, project.new_site_url))
        if cached is None:
            cached = await self._cache_get(report_id_key(project_id))
        if cached is not None:
            logger.info("Cache hit for project %s", project_id)
            return build_report(project, cached.results)

        logger.info("Cache miss for project %s, starting new crawl", project_id)
        results: List[ComparisonResult] = []
        async with self.stream(project_id) as events:
            async for event in events:
                if isinstance(event, ErrorEvent):
                    raise SiteMigrateError(event.message)
                if isinstance(event, ResultEvent):
                    results.append(event.result)
        return build_report(project, results)
