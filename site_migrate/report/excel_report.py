# File: site_migrate/report/excel_report.py
"""site_migrate.report.excel_report: single-sheet XLSX exports of a ProjectReport or a URL list."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from site_migrate.aggregator import ProjectReport
from site_migrate.report import details, filter_results

SHEET_TITLE = "Crawl Report"
URLS_SHEET_TITLE = "URLs"
COLUMNS: Sequence[str] = ("Old URL", "New URL", "Status", "Details")
_WIDTHS: Sequence[int] = (50, 50, 15, 100)


def _set_col_widths(ws, widths: Sequence[int]) -> None:
    for col_idx, width in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(col_idx)].width = width


def build_workbook(report: ProjectReport, status_filter: Optional[str] = None) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append(list(COLUMNS))
    for r in filter_results(report.results, status_filter):
        ws.append([r.old_url or "-", r.new_url or "-", r.status.value, details(r)])
    _set_col_widths(ws, _WIDTHS)
    return wb


def export_xlsx(report: ProjectReport, status_filter: Optional[str] = None) -> bytes:
    """Workbook bytes, as served by the export endpoint."""
    buffer = BytesIO()
    build_workbook(report, status_filter).save(buffer)
    return buffer.getvalue()


def render_xlsx(
    report: ProjectReport,
    output_path: Union[Path, str],
    status_filter: Optional[str] = None,
) -> Path:
    """Save the XLSX export at *output_path* and return its path."""
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    build_workbook(report, status_filter).save(output)
    return output


def export_url_list(urls: Iterable[str]) -> bytes:
    """One URL per row on a "URLs" sheet, as exported by the sitemap extractor."""
    wb = Workbook()
    ws = wb.active
    ws.title = URLS_SHEET_TITLE
    for url in urls:
        ws.append([url])
    _set_col_widths(ws, (100,))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
