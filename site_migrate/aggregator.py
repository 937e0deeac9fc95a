# File: site_migrate/aggregator.py
"""site_migrate.aggregator: comparison results, report summary and their serialization."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from site_migrate.crawler.models import PageData
from site_migrate.projects import Project

__all__ = (
    "ComparisonStatus",
    "ComparisonResult",
    "ReportSummary",
    "ProjectReport",
    "build_report",
)


class ComparisonStatus(str, enum.Enum):
    MATCHED = "Matched"
    MISSING = "Missing"
    NEW = "New"
    ERROR = "Error"


def _page(data: Optional[Mapping[str, Any]]) -> Optional[PageData]:
    return PageData.from_dict(data) if data else None


@dataclass(slots=True)
class ComparisonResult:
    """One report row: an old-site page and its path-based counterpart on the new site."""

    old_url: Optional[str]
    new_url: Optional[str]
    status: ComparisonStatus
    old_data: Optional[PageData] = None
    new_data: Optional[PageData] = None
    issues: List[str] = field(default_factory=list)

    @property
    def has_meta_issues(self) -> bool:
        return self.status is ComparisonStatus.MATCHED and bool(self.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "oldUrl": self.old_url,
            "newUrl": self.new_url,
            "status": self.status.value,
            "oldData": self.old_data.to_dict() if self.old_data else None,
            "newData": self.new_data.to_dict() if self.new_data else None,
            "issues": list(self.issues),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ComparisonResult:
        return cls(
            old_url=data.get("oldUrl"),
            new_url=data.get("newUrl"),
            status=ComparisonStatus(data["status"]),
            old_data=_page(data.get("oldData")),
            new_data=_page(data.get("newData")),
            issues=list(data.get("issues") or []),
        )


@dataclass(frozen=True, slots=True)
class ReportSummary:
    total_old: int = 0
    total_new: int = 0
    missing: int = 0
    new_pages: int = 0
    meta_issues: int = 0

    @classmethod
    def from_results(cls, results: Iterable[ComparisonResult]) -> ReportSummary:
        """Derive the counters from *results*; nothing is stored separately."""
        old_urls: set[str] = set()
        new_urls: set[str] = set()
        missing = new_pages = meta_issues = 0
        for r in results:
            if r.old_url and r.status is not ComparisonStatus.NEW:
                old_urls.add(r.old_url)
            if r.new_url:
                new_urls.add(r.new_url)
            if r.status is ComparisonStatus.MISSING:
                missing += 1
            elif r.status is ComparisonStatus.NEW:
                new_pages += 1
            elif r.has_meta_issues:
                meta_issues += 1
        return cls(len(old_urls), len(new_urls), missing, new_pages, meta_issues)

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalOld": self.total_old,
            "totalNew": self.total_new,
            "missing": self.missing,
            "newPages": self.new_pages,
            "metaIssues": self.meta_issues,
        }


@dataclass(slots=True)
class ProjectReport:
    """All results of one comparison run; the summary is always recomputed from them."""

    project: Project
    results: List[ComparisonResult] = field(default_factory=list)

    @property
    def summary(self) -> ReportSummary:
        return ReportSummary.from_results(self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.project.to_dict(),
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.results],
        }

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProjectReport:
        return cls(
            project=Project.from_dict(data["project"]),
            results=[ComparisonResult.from_dict(r) for r in data.get("results") or []],
        )

    @classmethod
    def from_json(cls, raw: str) -> ProjectReport:
        return cls.from_dict(json.loads(raw))


def build_report(project: Project, results: Sequence[ComparisonResult]) -> ProjectReport:
    """Assemble the report of a finished run."""
    return ProjectReport(project=project, results=list(results))
