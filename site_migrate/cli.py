# === FILE: site_migrate/cli.py ===
#!/usr/bin/env python3
"""
Command-line entry point of site_migrate.

Commands:
  compare   Crawl an old and a new site, stream results as JSON lines, save reports
  sitemap   Resolve a sitemap (index) into page URLs
  serve     Run the HTTP server with live event streams
  config    Show the effective configuration

Global options:
  --config PATH       YAML/JSON config (default: configs/default.yaml or built-ins)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stderr only if omitted)

Options of compare:
  --limit INT         Max pages per site (overrides max_pages)
  --concurrency INT   Simultaneous fetches per site
  --json PATH         Save the JSON report
  --html PATH         Save the HTML report
  --xlsx PATH         Save the XLSX export
  --filter NAME       Export filter: all, Missing, New, Meta
  --scan-timeout SEC  Timeout of the whole comparison (seconds)

Example:
  site-migrate compare https://old.example.com https://new.example.com --xlsx report.xlsx
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Callable, List, Optional

import click

from site_migrate import __version__
from site_migrate.aggregator import ComparisonResult, ProjectReport, build_report
from site_migrate.cache import build_cache
from site_migrate.comparison import ComparisonEngine
from site_migrate.config import AuditConfig, load_config
from site_migrate.crawler.fetcher import PageFetcher
from site_migrate.crawler.sitemap import SitemapResolver
from site_migrate.engine import ErrorEvent, ResultEvent, StreamEvent, StreamOrchestrator
from site_migrate.errors import InvalidProjectError
from site_migrate.logger import init_logging
from site_migrate.projects import ProjectStore
from site_migrate.report import EXPORT_FILTERS
from site_migrate.report.excel_report import render_xlsx
from site_migrate.report.html_report import render_html
from site_migrate.report.json_report import render_json
from site_migrate.server import run as run_server

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


async def run_compare(
    cfg: AuditConfig,
    old_url: str,
    new_url: str,
    on_event: Callable[[StreamEvent], None],
) -> Optional[ProjectReport]:
    """Stream one comparison, handing every event to *on_event*.

    Returns the report, or None when the run ended with an error event.
    """
    projects = ProjectStore(cfg.store_path)
    project = projects.create(old_url, new_url)
    cache = build_cache(cfg)
    results: List[ComparisonResult] = []
    try:
        async with PageFetcher(cfg) as fetcher:
            orchestrator = StreamOrchestrator(projects, cache, ComparisonEngine(fetcher, cfg), cfg)
            async with orchestrator.stream(project.id) as events:
                async for event in events:
                    on_event(event)
                    if isinstance(event, ErrorEvent):
                        return None
                    if isinstance(event, ResultEvent):
                        results.append(event.result)
    finally:
        await cache.close()
    return build_report(project, results)


async def resolve_sitemap(
    cfg: AuditConfig,
    url: str,
    on_url: Callable[[str, int], None],
    depth: Optional[int] = None,
    limit: Optional[int] = None,
) -> int:
    async with SitemapResolver(cfg) as resolver:
        return await resolver.resolve_streaming(url, on_url, depth, limit)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='site_migrate, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML or JSON config file.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stderr only if omitted)'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file):
    """site_migrate command group."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        stream='stderr',
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('compare', context_settings=CONTEXT_SETTINGS)
@click.argument('old_url')
@click.argument('new_url')
@click.option('--limit', '-l', 'limit', type=click.IntRange(min=1), default=None,
              help='Max pages per site (override max_pages)')
@click.option('--concurrency', type=click.IntRange(min=1), default=None,
              help='Simultaneous fetches per site')
@click.option('--json', '-j', 'json_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Save the JSON report')
@click.option('--html', 'html_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Save the HTML report')
@click.option('--xlsx', '-x', 'xlsx_output', default=None,
              type=click.Path(writable=True, dir_okay=False, path_type=Path),
              help='Save the XLSX export')
@click.option('--filter', 'status_filter', default='all', show_default=True,
              type=click.Choice(EXPORT_FILTERS), help='Rows kept in the saved reports')
@click.option('--scan-timeout', 'scan_timeout', type=float, default=None,
              help='Timeout of the whole comparison (seconds)')
@click.pass_context
def compare(ctx, old_url, new_url, limit, concurrency, json_output, html_output,
            xlsx_output, status_filter, scan_timeout):
    """Compare OLD_URL with NEW_URL and print one JSON line per event."""
    cfg = ctx.obj['config']
    overrides = {}
    if limit is not None:
        overrides['max_pages'] = limit
    if concurrency is not None:
        overrides['concurrency'] = concurrency
    if overrides:
        cfg = cfg.model_copy(update=overrides)

    def echo_event(event):
        click.echo(json.dumps(event.to_dict(), ensure_ascii=False))

    try:
        coro = run_compare(cfg, old_url, new_url, echo_event)
        if scan_timeout:
            report = asyncio.run(asyncio.wait_for(coro, timeout=scan_timeout))
        else:
            report = asyncio.run(coro)
    except InvalidProjectError as e:
        print_error(str(e))
    except asyncio.TimeoutError:
        print_error(f'Comparison did not finish within {scan_timeout} seconds')

    if report is None:
        print_error('Comparison failed')

    summary = report.summary
    click.echo(
        f'Old: {summary.total_old}, new: {summary.total_new}, missing: {summary.missing}, '
        f'new only: {summary.new_pages}, meta issues: {summary.meta_issues}',
        err=True,
    )

    if json_output:
        try:
            click.echo(f'JSON report: {render_json(report, json_output, status_filter)}', err=True)
        except OSError as e:
            print_error(f'Failed to save JSON: {e}')
    if html_output:
        try:
            click.echo(f'HTML report: {render_html(report, html_output, status_filter=status_filter)}', err=True)
        except OSError as e:
            print_error(f'Failed to save HTML: {e}')
    if xlsx_output:
        try:
            click.echo(f'XLSX export: {render_xlsx(report, xlsx_output, status_filter)}', err=True)
        except OSError as e:
            print_error(f'Failed to save XLSX: {e}')


@cli.command('sitemap', context_settings=CONTEXT_SETTINGS)
@click.argument('sitemap_url')
@click.option('--depth', type=click.IntRange(min=0), default=None, help='Max sitemap-index depth')
@click.option('--limit', '-l', 'limit', type=click.IntRange(min=1), default=None,
              help='Max URLs to report')
@click.pass_context
def sitemap(ctx, sitemap_url, depth, limit):
    """Print the page URLs listed under SITEMAP_URL."""
    cfg = ctx.obj['config']

    def echo_url(url, ordinal):
        click.echo(f'{ordinal}\t{url}')

    total = asyncio.run(resolve_sitemap(cfg, sitemap_url, echo_url, depth, limit))
    click.echo(f'Total: {total}', err=True)


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default='127.0.0.1', show_default=True)
@click.option('--port', default=8080, show_default=True, type=int)
@click.pass_context
def serve(ctx, host, port):
    """Run the HTTP server."""
    run_server(ctx.obj['config'], host=host, port=port)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the effective configuration as JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
