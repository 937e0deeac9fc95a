# File: tests/test_report.py
import json

import pytest
from openpyxl import load_workbook

from site_migrate.aggregator import (
    ComparisonResult,
    ComparisonStatus,
    ProjectReport,
    ReportSummary,
    build_report,
)
from site_migrate.crawler.models import PageData
from site_migrate.projects import Project
from site_migrate.report import details, filter_results
from site_migrate.report.excel_report import COLUMNS, SHEET_TITLE, export_xlsx, render_xlsx
from site_migrate.report.html_report import render_html
from site_migrate.report.json_report import render_json


@pytest.fixture()
def report() -> ProjectReport:
    project = Project("p1", "http://old.test", "http://new.test", created_at="2024-01-01T00:00:00+00:00")
    results = [
        ComparisonResult(
            "http://old.test",
            "http://new.test",
            ComparisonStatus.MATCHED,
            PageData(url="http://old.test", status=200, title="Home"),
            PageData(url="http://new.test", status=200, title="Home"),
            [],
        ),
        ComparisonResult(
            "http://old.test/a",
            "http://new.test/a",
            ComparisonStatus.MATCHED,
            PageData(url="http://old.test/a", status=200, title="A", schemas=frozenset({"Product"})),
            PageData(url="http://new.test/a", status=200, title="B"),
            ["Title mismatch", "Missing Schema: Product"],
        ),
        ComparisonResult(
            "http://old.test/gone",
            "http://new.test/gone",
            ComparisonStatus.MISSING,
            PageData(url="http://old.test/gone", status=200),
            None,
            ["URL missing on new site"],
        ),
        ComparisonResult(
            "http://old.test/moved",
            "http://new.test/moved",
            ComparisonStatus.ERROR,
            PageData(url="http://old.test/moved", status=200),
            PageData(url="http://new.test/moved", status=500),
            ["New site returns status 500"],
        ),
        ComparisonResult(
            "http://old.test/fresh",
            "http://new.test/fresh",
            ComparisonStatus.NEW,
            None,
            PageData(url="http://new.test/fresh", status=200),
            ["Page found on new site but not on old site"],
        ),
    ]
    return build_report(project, results)


def test_summary_is_derived_from_results(report):
    assert report.summary == ReportSummary(
        total_old=4, total_new=5, missing=1, new_pages=1, meta_issues=1
    )
    assert report.to_dict()["summary"] == {
        "totalOld": 4,
        "totalNew": 5,
        "missing": 1,
        "newPages": 1,
        "metaIssues": 1,
    }


def test_summary_of_empty_report():
    assert ReportSummary.from_results([]) == ReportSummary()


def test_report_json_roundtrip_keeps_pages(report):
    restored = ProjectReport.from_json(report.json())
    assert restored.project == report.project
    assert restored.summary == report.summary
    assert restored.results[1].old_data.schemas == frozenset({"Product"})
    assert restored.results[2].new_data is None
    assert restored.results[4].status is ComparisonStatus.NEW


def test_result_dict_uses_camel_case(report):
    data = report.results[2].to_dict()
    assert set(data) == {"oldUrl", "newUrl", "status", "oldData", "newData", "issues"}
    assert data["status"] == "Missing"
    assert data["newData"] is None


@pytest.mark.parametrize(
    "status_filter,expected",
    [
        (None, ["http://old.test", "http://old.test/a", "http://old.test/gone", "http://old.test/moved", "http://old.test/fresh"]),
        ("all", ["http://old.test", "http://old.test/a", "http://old.test/gone", "http://old.test/moved", "http://old.test/fresh"]),
        ("Missing", ["http://old.test/gone", "http://old.test/moved"]),
        ("New", ["http://old.test/fresh"]),
        ("Meta", ["http://old.test/a"]),
    ],
)
def test_filter_results(report, status_filter, expected):
    assert [r.old_url for r in filter_results(report.results, status_filter)] == expected


def test_unknown_filter(report):
    with pytest.raises(ValueError):
        filter_results(report.results, "Broken")


def test_details(report):
    assert details(report.results[0]) == "No Issues"
    assert details(report.results[1]) == "Title mismatch, Missing Schema: Product"


def test_render_json(report, tmp_path):
    path = render_json(report, tmp_path / "out" / "report.json", status_filter="Meta")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["project"]["id"] == "p1"
    assert [r["oldUrl"] for r in data["results"]] == ["http://old.test/a"]
    # the summary always covers the whole run
    assert data["summary"]["totalOld"] == 4


def test_render_html(report, tmp_path):
    path = render_html(report, tmp_path / "report.html")
    text = path.read_text(encoding="utf-8")
    assert "http://old.test/gone" in text
    assert "Title mismatch, Missing Schema: Product" in text
    assert "Meta issues: 1" in text


def test_render_html_escapes_values(tmp_path):
    project = Project("p2", "http://old.test", "http://new.test")
    result = ComparisonResult(
        "http://old.test/<script>", "http://new.test/x", ComparisonStatus.MATCHED, issues=["Title mismatch"]
    )
    text = render_html(build_report(project, [result]), tmp_path / "r.html").read_text(encoding="utf-8")
    assert "<script>" not in text
    assert "&lt;script&gt;" in text


def test_render_xlsx(report, tmp_path):
    path = render_xlsx(report, tmp_path / "report.xlsx", status_filter="Missing")
    wb = load_workbook(path)
    ws = wb[SHEET_TITLE]
    rows = list(ws.iter_rows(values_only=True))
    assert rows[0] == COLUMNS
    assert rows[1:] == [
        ("http://old.test/gone", "http://new.test/gone", "Missing", "URL missing on new site"),
        ("http://old.test/moved", "http://new.test/moved", "Error", "New site returns status 500"),
    ]
    assert ws.column_dimensions["A"].width == 50
    assert ws.column_dimensions["D"].width == 100


def test_export_xlsx_bytes(report, tmp_path):
    data = export_xlsx(report)
    assert data[:2] == b"PK"
    target = tmp_path / "x.xlsx"
    target.write_bytes(data)
    ws = load_workbook(target)[SHEET_TITLE]
    assert ws.max_row == 1 + len(report.results)
    assert ws.cell(row=2, column=4).value == "No Issues"
