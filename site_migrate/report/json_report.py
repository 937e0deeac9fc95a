# site_migrate/report/json_report.py

"""
JSON report for site_migrate.

Serializes a ProjectReport (summary included) to a file.
"""
import json
from pathlib import Path
from typing import Optional

from site_migrate.aggregator import ProjectReport
from site_migrate.report import filter_results


def render_json(
    report: ProjectReport, output_path: Path | str, status_filter: Optional[str] = None
) -> Path:
    """
    Save *report* as JSON at *output_path*.

    :param report: finished ProjectReport
    :param output_path: target JSON file
    :param status_filter: optional export filter (``Missing``, ``New``, ``Meta``)
    :return: Path of the written file

    Example:
    ```python
    from site_migrate.report.json_report import render_json
    report_path = render_json(report, 'reports/report.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = report.to_dict()
    if status_filter:
        data["results"] = [r.to_dict() for r in filter_results(report.results, status_filter)]

    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return output
