# File: site_migrate/server.py
"""site_migrate.server: aiohttp application exposing projects, live streams and exports.

Routes
------
``POST /projects``                  create a project from ``{"oldSiteUrl", "newSiteUrl"}``
``GET  /projects/{id}``             project record
``GET  /projects/{id}/stream``      server-sent events, one per stream item
``GET  /projects/{id}/report``      full JSON report (cached or freshly crawled)
``GET  /projects/{id}/export``      XLSX export, ``?filter=Missing|New|Meta``
``GET  /sitemap/urls``              server-sent events of the page URLs under ``?sitemapUrl=``
``POST /sitemap/urls/export``       XLSX list of ``{"urls": [...]}``

A client that drops an event stream cancels the work behind it.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Dict, Optional

from aiohttp import web

from site_migrate.cache import Cache, build_cache
from site_migrate.comparison import ComparisonEngine
from site_migrate.config import AuditConfig
from site_migrate.crawler.fetcher import PageFetcher, PageSource
from site_migrate.crawler.sitemap import SitemapResolver
from site_migrate.engine import StreamEvent, StreamOrchestrator
from site_migrate.errors import InvalidProjectError, ProjectNotFoundError, SiteMigrateError
from site_migrate.logger import logger
from site_migrate.projects import ProjectStore
from site_migrate.report import EXPORT_FILTERS
from site_migrate.report.excel_report import export_url_list, export_xlsx

CONFIG_KEY = web.AppKey("config", AuditConfig)
PROJECTS_KEY = web.AppKey("projects", ProjectStore)
ORCHESTRATOR_KEY = web.AppKey("orchestrator", StreamOrchestrator)
SITEMAP_KEY = web.AppKey("sitemap", SitemapResolver)

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

routes = web.RouteTableDef()


def sse_data(data: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n".encode("utf-8")


def sse_frame(event: StreamEvent) -> bytes:
    """Encode one stream item as a server-sent event."""
    return sse_data(event.to_dict())


def _json_error(status: int, message: str) -> web.Response:
    return web.json_response({"message": message}, status=status)


@routes.post("/projects")
async def create_project(request: web.Request) -> web.Response:
    try:
        body = await request.json()
        old_url, new_url = str(body["oldSiteUrl"]), str(body["newSiteUrl"])
    except (ValueError, KeyError, TypeError):
        return _json_error(400, "Body must be JSON with oldSiteUrl and newSiteUrl.")
    try:
        project = request.app[PROJECTS_KEY].create(old_url, new_url)
    except InvalidProjectError as exc:
        return _json_error(400, str(exc))
    return web.json_response({"id": project.id}, status=201)


@routes.get("/projects/{id}")
async def get_project(request: web.Request) -> web.Response:
    try:
        project = request.app[PROJECTS_KEY].get(request.match_info["id"])
    except ProjectNotFoundError as exc:
        return _json_error(404, str(exc))
    return web.json_response(project.to_dict())


@routes.get("/projects/{id}/stream")
async def stream_comparison(request: web.Request) -> web.StreamResponse:
    project_id = request.match_info["id"]
    response = web.StreamResponse(headers=SSE_HEADERS)
    await response.prepare(request)

    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        async with orchestrator.stream(project_id) as events:
            async for event in events:
                await response.write(sse_frame(event))
    except ConnectionResetError:
        logger.info("Event stream for project %s closed by client", project_id)
        return response

    await response.write_eof()
    return response


@routes.get("/projects/{id}/report")
async def get_report(request: web.Request) -> web.Response:
    try:
        report = await request.app[ORCHESTRATOR_KEY].run_comparison(request.match_info["id"])
    except ProjectNotFoundError as exc:
        return _json_error(404, str(exc))
    except SiteMigrateError as exc:
        return _json_error(500, str(exc))
    return web.json_response(report.to_dict())


@routes.get("/projects/{id}/export")
async def export_report(request: web.Request) -> web.Response:
    project_id = request.match_info["id"]
    status_filter = request.query.get("filter") or "all"
    if status_filter not in EXPORT_FILTERS:
        return _json_error(400, f"Unknown filter: {status_filter}")
    try:
        report = await request.app[ORCHESTRATOR_KEY].run_comparison(project_id)
    except ProjectNotFoundError as exc:
        return _json_error(404, str(exc))
    except SiteMigrateError as exc:
        return _json_error(500, str(exc))

    body = export_xlsx(report, status_filter)
    filename = f"site_migrate_report_{project_id}_{status_filter}.xlsx"
    return web.Response(
        body=body,
        content_type=XLSX_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@routes.get("/sitemap/urls")
async def extract_sitemap_urls(request: web.Request) -> web.StreamResponse:
    """Stream ``start``, one ``result`` per page URL, then ``complete`` (or ``error``)."""
    sitemap_url = request.query.get("sitemapUrl", "").strip()
    response = web.StreamResponse(headers=SSE_HEADERS)
    await response.prepare(request)

    if not sitemap_url:
        await response.write(sse_data({"type": "error", "message": "Sitemap URL is required"}))
        await response.write_eof()
        return response

    async def send_url(url: str, index: int) -> None:
        await response.write(sse_data({"type": "result", "url": url, "index": index}))

    try:
        await response.write(sse_data({"type": "start", "sitemapUrl": sitemap_url}))
        total = await request.app[SITEMAP_KEY].resolve_streaming(sitemap_url, send_url)
    except ConnectionResetError:
        logger.info("Sitemap stream for %s closed by client", sitemap_url)
        return response

    if total == 0:
        await response.write(sse_data({"type": "error", "message": "No URLs found in sitemap"}))
    else:
        await response.write(sse_data({"type": "complete", "total": total}))
    await response.write_eof()
    return response


@routes.post("/sitemap/urls/export")
async def export_sitemap_urls(request: web.Request) -> web.Response:
    try:
        urls = (await request.json())["urls"]
    except (ValueError, KeyError, TypeError):
        urls = None
    if not isinstance(urls, list) or not urls:
        return _json_error(400, "No URLs to export")

    return web.Response(
        body=export_url_list([str(u) for u in urls]),
        content_type=XLSX_TYPE,
        headers={"Content-Disposition": 'attachment; filename="sitemap_urls.xlsx"'},
    )


def create_app(
    config: AuditConfig,
    projects: Optional[ProjectStore] = None,
    cache: Optional[Cache] = None,
    fetcher: Optional[PageSource] = None,
) -> web.Application:
    """Build the application. Without *fetcher*, an aiohttp-backed one lives as long as the app."""
    app = web.Application()
    app[CONFIG_KEY] = config
    app[PROJECTS_KEY] = projects if projects is not None else ProjectStore(config.store_path)
    report_cache = cache if cache is not None else build_cache(config)

    async def _sitemaps(app: web.Application) -> AsyncIterator[None]:
        async with SitemapResolver(config) as resolver:
            app[SITEMAP_KEY] = resolver
            yield

    async def _lifecycle(app: web.Application) -> AsyncIterator[None]:
        if fetcher is not None:
            app[ORCHESTRATOR_KEY] = StreamOrchestrator(
                app[PROJECTS_KEY], report_cache, ComparisonEngine(fetcher, config), config
            )
            yield
            return
        async with PageFetcher(config) as page_fetcher:
            app[ORCHESTRATOR_KEY] = StreamOrchestrator(
                app[PROJECTS_KEY], report_cache, ComparisonEngine(page_fetcher, config), config
            )
            yield
        close = getattr(report_cache, "close", None)
        if close is not None:
            await close()

    app.cleanup_ctx.append(_sitemaps)
    app.cleanup_ctx.append(_lifecycle)
    app.add_routes(routes)
    return app


def run(config: AuditConfig, host: str = "127.0.0.1", port: int = 8080) -> None:
    logger.info("Serving on http://%s:%d", host, port)
    web.run_app(create_app(config), host=host, port=port, print=None)
