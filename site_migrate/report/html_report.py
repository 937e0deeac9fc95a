# File: site_migrate/report/html_report.py
"""site_migrate.report.html_report: HTML report rendered with Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_migrate.aggregator import ProjectReport
from site_migrate.report import details, filter_results

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_html(
    report: ProjectReport,
    output_path: Union[Path, str],
    template_dir: Union[Path, str, None] = None,
    status_filter: Optional[str] = None,
) -> Path:
    """Render the report template and save it at *output_path*.

    Args:
        report: finished ProjectReport.
        output_path: target HTML file.
        template_dir: directory holding ``report.html.j2``; the bundled one by default.
        status_filter: optional export filter.

    Returns:
        Path of the written HTML file.
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("report.html.j2")

    context: dict[str, Any] = {
        "project": report.project,
        "summary": report.summary,
        "rows": [
            {
                "old_url": r.old_url or "-",
                "new_url": r.new_url or "-",
                "status": r.status.value,
                "details": details(r),
            }
            for r in filter_results(report.results, status_filter)
        ],
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path
