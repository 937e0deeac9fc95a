# File: tests/test_server.py
from __future__ import annotations

import json
from io import BytesIO
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from aiohttp import ClientSession, web
from openpyxl import load_workbook

from site_migrate.cache import MemoryCache
from site_migrate.projects import ProjectStore
from site_migrate.server import XLSX_TYPE, create_app
from site_migrate.utils import url_pair_key

from .conftest import build_sites, serve_app


def parse_sse(text: str) -> List[Dict[str, Any]]:
    return [json.loads(line[len("data: "):]) for line in text.splitlines() if line.startswith("data: ")]


@pytest_asyncio.fixture
async def server(config, unused_tcp_port):
    fetcher = build_sites(["/a", "/b"], ["/a", "/c"])
    cache = MemoryCache()
    app = create_app(config, projects=ProjectStore(), cache=cache, fetcher=fetcher)
    async for base in serve_app(app, unused_tcp_port):
        async with ClientSession(base_url=base) as session:
            yield session, cache, fetcher


async def create_project(session: ClientSession) -> str:
    async with session.post(
        "/projects", json={"oldSiteUrl": "http://old.test", "newSiteUrl": "http://new.test"}
    ) as resp:
        assert resp.status == 201
        return (await resp.json())["id"]


@pytest.mark.asyncio()
async def test_create_and_get_project(server):
    session, _, _ = server
    project_id = await create_project(session)

    async with session.get(f"/projects/{project_id}") as resp:
        assert resp.status == 200
        data = await resp.json()
    assert data["id"] == project_id
    assert data["oldSiteUrl"] == "http://old.test"
    assert data["newSiteUrl"] == "http://new.test"


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "body",
    [
        {"oldSiteUrl": "http://www.site.test", "newSiteUrl": "https://site.test/"},
        {"oldSiteUrl": "not a url", "newSiteUrl": "http://new.test"},
        {"oldSiteUrl": "http://old.test"},
    ],
)
async def test_create_project_rejects_bad_pairs(server, body):
    session, _, _ = server
    async with session.post("/projects", json=body) as resp:
        assert resp.status == 400
        assert (await resp.json())["message"]


@pytest.mark.asyncio()
async def test_unknown_project(server):
    session, _, _ = server
    async with session.get("/projects/missing") as resp:
        assert resp.status == 404
        assert (await resp.json())["message"] == "Project not found: missing"

    async with session.get("/projects/missing/stream") as resp:
        events = parse_sse(await resp.text())
    assert events == [{"type": "error", "message": "Project not found: missing"}]


@pytest.mark.asyncio()
async def test_stream_then_replay(server):
    session, cache, fetcher = server
    project_id = await create_project(session)

    async with session.get(f"/projects/{project_id}/stream") as resp:
        assert resp.headers["Content-Type"].startswith("text/event-stream")
        live = parse_sse(await resp.text())

    assert live[-1] == {"type": "complete"}
    results = [e["result"] for e in live if e["type"] == "result"]
    statuses = sorted((r["oldUrl"], r["status"]) for r in results)
    assert statuses == [
        ("http://old.test", "Matched"),
        ("http://old.test/a", "Matched"),
        ("http://old.test/b", "Missing"),
        ("http://old.test/c", "New"),
    ]
    assert await cache.get(url_pair_key("http://old.test", "http://new.test")) is not None

    # a second project on the same pair is served from the cache
    fetched = len(fetcher.calls)
    other_id = await create_project(session)
    async with session.get(f"/projects/{other_id}/stream") as resp:
        replay = parse_sse(await resp.text())
    assert replay == live
    assert len(fetcher.calls) == fetched


@pytest.mark.asyncio()
async def test_report_endpoint(server):
    session, _, _ = server
    project_id = await create_project(session)

    async with session.get(f"/projects/{project_id}/report") as resp:
        assert resp.status == 200
        report = await resp.json()

    assert report["project"]["id"] == project_id
    assert report["summary"] == {
        "totalOld": 3,
        "totalNew": 4,
        "missing": 1,
        "newPages": 1,
        "metaIssues": 0,
    }


@pytest.mark.asyncio()
async def test_export_endpoint(server):
    session, _, _ = server
    project_id = await create_project(session)

    async with session.get(f"/projects/{project_id}/export", params={"filter": "Missing"}) as resp:
        assert resp.status == 200
        assert "attachment" in resp.headers["Content-Disposition"]
        assert f"site_migrate_report_{project_id}_Missing.xlsx" in resp.headers["Content-Disposition"]
        body = await resp.read()

    rows = list(load_workbook(BytesIO(body)).active.iter_rows(values_only=True))
    assert rows[1:] == [("http://old.test/b", "http://new.test/b", "Missing", "URL missing on new site")]


@pytest.mark.asyncio()
async def test_export_rejects_unknown_filter(server):
    session, _, _ = server
    project_id = await create_project(session)
    async with session.get(f"/projects/{project_id}/export", params={"filter": "Everything"}) as resp:
        assert resp.status == 400


SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"


@pytest_asyncio.fixture
async def sitemap_server(config, unused_tcp_port_factory):
    """The application next to a site serving one sitemap index with two children."""
    docs: Dict[str, str] = {}

    async def handle(request: web.Request) -> web.Response:
        body = docs.get(request.path)
        if body is None:
            return web.Response(status=404, text="not found")
        return web.Response(text=body, content_type="application/xml")

    site = web.Application()
    site.router.add_get("/{tail:.*}", handle)
    async for site_base in serve_app(site, unused_tcp_port_factory()):
        docs["/sitemap.xml"] = (
            f'<sitemapindex xmlns="{SITEMAP_NS}">'
            f"<sitemap><loc>{site_base}/pages.xml</loc></sitemap>"
            f"<sitemap><loc>{site_base}/posts.xml</loc></sitemap>"
            "</sitemapindex>"
        )
        docs["/pages.xml"] = (
            f'<urlset xmlns="{SITEMAP_NS}">'
            "<url><loc>http://p.test/</loc></url><url><loc>http://p.test/about</loc></url>"
            "</urlset>"
        )
        docs["/posts.xml"] = (
            f'<urlset xmlns="{SITEMAP_NS}">'
            "<url><loc>http://p.test/about</loc></url><url><loc>http://p.test/blog/1</loc></url>"
            "</urlset>"
        )
        docs["/empty.xml"] = f'<urlset xmlns="{SITEMAP_NS}"></urlset>'

        app = create_app(config, projects=ProjectStore(), cache=MemoryCache(), fetcher=build_sites([], []))
        async for base in serve_app(app, unused_tcp_port_factory()):
            async with ClientSession(base_url=base) as session:
                yield session, site_base


@pytest.mark.asyncio()
async def test_sitemap_urls_are_streamed(sitemap_server):
    session, site_base = sitemap_server

    async with session.get("/sitemap/urls", params={"sitemapUrl": f"{site_base}/sitemap.xml"}) as resp:
        assert resp.headers["Content-Type"].startswith("text/event-stream")
        events = parse_sse(await resp.text())

    assert events[0] == {"type": "start", "sitemapUrl": f"{site_base}/sitemap.xml"}
    assert events[1:-1] == [
        {"type": "result", "url": "http://p.test/", "index": 1},
        {"type": "result", "url": "http://p.test/about", "index": 2},
        {"type": "result", "url": "http://p.test/blog/1", "index": 3},
    ]
    assert events[-1] == {"type": "complete", "total": 3}


@pytest.mark.asyncio()
async def test_sitemap_urls_errors(sitemap_server):
    session, site_base = sitemap_server

    async with session.get("/sitemap/urls") as resp:
        assert parse_sse(await resp.text()) == [{"type": "error", "message": "Sitemap URL is required"}]

    async with session.get("/sitemap/urls", params={"sitemapUrl": f"{site_base}/empty.xml"}) as resp:
        events = parse_sse(await resp.text())
    assert events[-1] == {"type": "error", "message": "No URLs found in sitemap"}
    assert not [e for e in events if e["type"] in ("result", "complete")]


@pytest.mark.asyncio()
async def test_sitemap_urls_export(sitemap_server):
    session, _ = sitemap_server

    urls = ["http://p.test/", "http://p.test/about"]
    async with session.post("/sitemap/urls/export", json={"urls": urls}) as resp:
        assert resp.status == 200
        assert resp.headers["Content-Type"].startswith(XLSX_TYPE)
        body = await resp.read()

    sheet = load_workbook(BytesIO(body)).active
    assert sheet.title == "URLs"
    assert [row[0] for row in sheet.iter_rows(values_only=True)] == urls

    for payload in ({"urls": []}, {"links": urls}, ["http://p.test/"]):
        async with session.post("/sitemap/urls/export", json=payload) as resp:
            assert resp.status == 400
            assert (await resp.json())["message"] == "No URLs to export"
