# File: site_migrate/report/__init__.py
"""site_migrate.report: export of a finished ProjectReport (JSON, HTML, XLSX)."""

from __future__ import annotations

from typing import Iterable, List, Optional

from site_migrate.aggregator import ComparisonResult, ComparisonStatus

EXPORT_FILTERS = ("all", "Missing", "New", "Meta")


def filter_results(
    results: Iterable[ComparisonResult], status_filter: Optional[str] = None
) -> List[ComparisonResult]:
    """Rows kept by an export filter.

    ``Missing`` keeps Missing and Error rows, ``New`` keeps orphans, ``Meta`` keeps
    matched pages with findings; ``None`` or ``"all"`` keeps everything.
    """
    rows = list(results)
    if not status_filter or status_filter == "all":
        return rows
    if status_filter == "Missing":
        return [r for r in rows if r.status in (ComparisonStatus.MISSING, ComparisonStatus.ERROR)]
    if status_filter == "New":
        return [r for r in rows if r.status is ComparisonStatus.NEW]
    if status_filter == "Meta":
        return [r for r in rows if r.has_meta_issues]
    raise ValueError(f"Unknown export filter: {status_filter}")


def details(result: ComparisonResult) -> str:
    """Issues of one row as a single cell."""
    return ", ".join(result.issues) if result.issues else "No Issues"


__all__ = ["EXPORT_FILTERS", "filter_results", "details"]
