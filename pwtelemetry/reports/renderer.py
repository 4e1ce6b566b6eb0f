from __future__ import annotations

from pathlib import Path

from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.reports.heatmap_report import HeatmapReportGenerator
from pwtelemetry.reports.network_report import NetworkReportGenerator

logger = get_logger(__name__)


def render_reports(settings: Settings, store: SafeFileStore) -> dict[str, Path | None]:
    rendered: dict[str, Path | None] = {}
    if settings.RUN_NETWORK_REPORT:
        rendered[NetworkReportGenerator.report_name] = NetworkReportGenerator(settings, store).generate()
    if settings.RUN_HEATMAP_REPORT:
        rendered[HeatmapReportGenerator.report_name] = HeatmapReportGenerator(settings, store).generate()
    logger.info("report.render.done", reports={name: str(path) if path else None for name, path in rendered.items()})
    return rendered
