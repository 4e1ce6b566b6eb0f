from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Any, TypedDict
from urllib.parse import urlsplit

from pydantic import ValidationError

from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.core.security import SandboxViolationError
from pwtelemetry.pipeline.worker_files import DataKind, merged_file_path
from pwtelemetry.reports.templating import ReportGenerationError, load_template, render_template, to_script_json
from pwtelemetry.schemas.telemetry_files import validate_request_map
from pwtelemetry.state.telemetry_state import RequestMap, RequestStats

logger = get_logger(__name__)

NO_FAILURES_PLACEHOLDER = "<p>No failures recorded.</p>"
UNKNOWN_TEST = "UNKNOWN_TEST"


class ChartData(TypedDict):
    urls: list[str]
    successCounts: list[int]
    failCounts: list[int]


def fail_percentage(stats: RequestStats) -> str:
    total = stats["success"] + stats["fail"]
    if total == 0:
        return "0"
    return f"{stats['fail'] / total * 100:.2f}"


def hostname_of(url: str) -> str:
    try:
        return urlsplit(url).hostname or url
    except ValueError:
        return url


def path_of(url: str) -> str:
    try:
        return urlsplit(url).path or "/"
    except ValueError:
        return url


def build_chart_data(report: RequestMap) -> ChartData:
    chart = ChartData(urls=[], successCounts=[], failCounts=[])
    for url, stats in report.items():
        chart["urls"].append(url)
        chart["successCounts"].append(stats["success"])
        chart["failCounts"].append(stats["fail"])
    return chart


def _stats_row(url: str, stats: RequestStats) -> str:
    return (
        f"<tr><td>{html.escape(url)}</td><td>{stats['success']}</td>"
        f"<td>{stats['fail']}</td><td>{fail_percentage(stats)}%</td></tr>"
    )


def build_summary_rows(report: RequestMap) -> str:
    return "".join(_stats_row(url, stats) for url, stats in report.items())


def group_by_domain(report: RequestMap) -> dict[str, RequestMap]:
    groups: dict[str, RequestMap] = {}
    for url, stats in report.items():
        groups.setdefault(hostname_of(url), {})[url] = stats
    return groups


def build_domain_accordions(report: RequestMap) -> str:
    sections = []
    for domain, group in group_by_domain(report).items():
        rows = "".join(_stats_row(url, stats) for url, stats in group.items())
        sections.append(
            "<details>"
            f"<summary>{html.escape(domain)}</summary>"
            "<table><thead><tr><th>URL</th><th>Success</th><th>Fail</th><th>Fail %</th></tr></thead>"
            f"<tbody>{rows}</tbody></table>"
            "</details>"
        )
    return "".join(sections)


def failed_urls(report: RequestMap) -> list[str]:
    return [url for url, stats in report.items() if stats["fail"] > 0]


def pivot_failures(report: RequestMap) -> dict[str, dict[str, int]]:
    """Failure counts as ``{test name: {url: count}}``."""
    pivot: dict[str, dict[str, int]] = {}
    for url, stats in report.items():
        for failure in stats["failures"]:
            counts = pivot.setdefault(failure.get("testName") or UNKNOWN_TEST, {})
            counts[url] = counts.get(url, 0) + 1
    return pivot


def build_failures_pivot(report: RequestMap) -> str:
    urls = failed_urls(report)
    if not urls:
        return NO_FAILURES_PLACEHOLDER

    header = "".join(
        f'<th><div class="tooltip">{html.escape(path_of(url))}'
        f'<span class="tooltiptext">{html.escape(url)}</span></div></th>'
        for url in urls
    )
    rows = "".join(
        f"<tr><td>{html.escape(test_name)}</td>" + "".join(f"<td>{counts.get(url, 0)}</td>" for url in urls) + "</tr>"
        for test_name, counts in pivot_failures(report).items()
    )
    return f"<table><thead><tr><th>Test Name</th>{header}</tr></thead><tbody>{rows}</tbody></table>"


class NetworkReportGenerator:
    report_name = "network"

    def __init__(self, settings: Settings, store: SafeFileStore):
        self.settings = settings
        self.store = store

    @property
    def source_path(self) -> Path:
        return merged_file_path(self.settings, DataKind.NETWORK)

    @property
    def output_path(self) -> Path:
        return self.settings.network_report_path / self.settings.NETWORK_REPORT_FILENAME

    def load_report(self) -> RequestMap | None:
        source = self.source_path
        if not self.store.path_exists(source):
            logger.warning("report.network.no_data", path=str(source))
            return None
        try:
            return validate_request_map(self.store.read_json(source))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ReportGenerationError(f"Corrupt merged network file {source}: {exc}", self.report_name, "read", source) from exc

    def render(self, report: RequestMap) -> str:
        sections: dict[str, Any] = {
            "chartSection": render_template(load_template("chart.html"), {"chartData": to_script_json(build_chart_data(report))}),
            "summarySection": render_template(load_template("summary.html"), {"summaryRows": build_summary_rows(report)}),
            "domainSection": render_template(load_template("domain.html"), {"domainAccordions": build_domain_accordions(report)}),
            "pivotSection": render_template(load_template("failures-by-test.html"), {"pivotTable": build_failures_pivot(report)}),
            "style": load_template("style.css"),
            "chartJs": load_template("chart.js"),
            "sortJs": load_template("sortTable.js"),
        }
        return render_template(load_template("main.html"), sections)

    def generate(self) -> Path | None:
        report = self.load_report()
        if report is None:
            return None

        content = self.render(report)
        target = self.output_path
        try:
            written = self.store.write_text(target, content)
        except SandboxViolationError:
            raise
        except OSError as exc:
            raise ReportGenerationError(f"Cannot write {target}: {exc}", self.report_name, "write", target) from exc

        logger.info(
            "report.network.generated",
            path=str(written),
            urls=len(report),
            failing_urls=len(failed_urls(report)),
        )
        return written
