from __future__ import annotations

import html
import json
import math
import posixpath
from pathlib import Path
from typing import Any, Callable, TypedDict

from pydantic import ValidationError

from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.core.security import SandboxViolationError
from pwtelemetry.pipeline.worker_files import DataKind, merged_file_path
from pwtelemetry.reports.templating import ReportGenerationError, load_template, render_template, to_script_json
from pwtelemetry.schemas.telemetry_files import validate_interaction_logs, validate_screenshot_map
from pwtelemetry.state.telemetry_state import BoundingBox, InteractionLogEntry, Origin, ScreenshotMap

logger = get_logger(__name__)


class HeatmapPoint(TypedDict, total=False):
    x: int
    y: int
    value: int
    counts: dict[str, int]


class BoxSummary(TypedDict):
    boundingBox: BoundingBox
    counts: dict[str, int]
    value: int


class PageLink(TypedDict):
    name: str
    path: str


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def project_center(box: BoundingBox, origin: Origin) -> tuple[int, int]:
    """Center of ``box`` in the coordinate space of a screenshot taken at ``origin``."""
    x = round_half_up(box["x"] - origin["x"] + box["width"] / 2)
    y = round_half_up(box["y"] - origin["y"] + box["height"] / 2)
    return x, y


def group_by_object(entries: list[InteractionLogEntry]) -> dict[str, list[InteractionLogEntry]]:
    grouped: dict[str, list[InteractionLogEntry]] = {}
    for entry in entries:
        grouped.setdefault(entry["logicalObjectName"], []).append(entry)
    return grouped


def summarize_events(entries: list[InteractionLogEntry]) -> list[BoxSummary]:
    summaries: dict[tuple[float, float, float, float], BoxSummary] = {}
    for entry in entries:
        box = entry["boundingBox"]
        key = (box["x"], box["y"], box["width"], box["height"])
        summary = summaries.get(key)
        if summary is None:
            summary = BoxSummary(boundingBox=box, counts={}, value=0)
            summaries[key] = summary
        kind = entry["interactionType"]
        summary["counts"][kind] = summary["counts"].get(kind, 0) + 1
        summary["value"] += 1
    return list(summaries.values())


def points_per_box(entries: list[InteractionLogEntry], origin: Origin, event_value: int = 0) -> list[HeatmapPoint]:
    points: list[HeatmapPoint] = []
    for summary in summarize_events(entries):
        x, y = project_center(summary["boundingBox"], origin)
        points.append(HeatmapPoint(x=x, y=y, value=summary["value"], counts=summary["counts"]))
    return points


def points_per_event(entries: list[InteractionLogEntry], origin: Origin, event_value: int = 2) -> list[HeatmapPoint]:
    points: list[HeatmapPoint] = []
    for entry in entries:
        x, y = project_center(entry["boundingBox"], origin)
        points.append(HeatmapPoint(x=x, y=y, value=event_value))
    return points


WEIGHTINGS: dict[str, Callable[..., list[HeatmapPoint]]] = {
    "per_box": points_per_box,
    "per_event": points_per_event,
}


class HeatmapReportGenerator:
    """Renders one heatmap page per logical object plus a navigation index.

    Reads the merged interaction and screenshot files and never writes to
    them, so rendering twice gives the same pages.
    """

    report_name = "heatmap"

    def __init__(self, settings: Settings, store: SafeFileStore):
        self.settings = settings
        self.store = store

    @property
    def output_dir(self) -> Path:
        return self.settings.heatmap_report_path

    def _load(self, kind: DataKind, validator: Callable[[Any], Any]) -> Any:
        source = merged_file_path(self.settings, kind)
        if not self.store.path_exists(source):
            return None
        try:
            return validator(self.store.read_json(source))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ReportGenerationError(f"Corrupt merged {kind.value} file {source}: {exc}", self.report_name, "read", source) from exc

    def _write(self, target: Path, content: str) -> Path:
        try:
            return self.store.write_text(target, content)
        except SandboxViolationError:
            raise
        except OSError as exc:
            raise ReportGenerationError(f"Cannot write {target}: {exc}", self.report_name, "write", target) from exc

    def build_points(self, entries: list[InteractionLogEntry], origin: Origin) -> list[HeatmapPoint]:
        weighting = WEIGHTINGS[self.settings.HEATMAP_WEIGHTING]
        return weighting(entries, origin, self.settings.HEATMAP_EVENT_VALUE)

    def render_page(self, name: str, points: list[HeatmapPoint], screenshot_path: str) -> str:
        # Paths are relative to the page directory, which nests one level per "/" in the name.
        image = posixpath.relpath(screenshot_path, start=name)
        index_link = posixpath.relpath(self.settings.HEATMAP_INDEX_FILENAME, start=name)
        return render_template(
            load_template("heatmap.html"),
            {
                "title": html.escape(name),
                "indexLink": html.escape(index_link),
                "screenshot": to_script_json(image),
                "points": to_script_json(points),
                "maxPoints": to_script_json(self.settings.HEATMAP_MAX_POINTS),
                "blur": to_script_json(self.settings.HEATMAP_BLUR),
                "radius": to_script_json(self.settings.HEATMAP_RADIUS),
                "minOpacity": to_script_json(self.settings.HEATMAP_MIN_OPACITY),
                "maxOpacity": to_script_json(self.settings.HEATMAP_MAX_OPACITY),
            },
        )

    def generate(self) -> Path | None:
        interactions: list[InteractionLogEntry] | None = self._load(DataKind.INTERACTIONS, validate_interaction_logs)
        if interactions is None:
            logger.warning("report.heatmap.no_data", path=str(merged_file_path(self.settings, DataKind.INTERACTIONS)))
            return None
        screenshots: ScreenshotMap | None = self._load(DataKind.SCREENSHOTS, validate_screenshot_map)
        if screenshots is None:
            logger.warning("report.heatmap.no_screenshots", path=str(merged_file_path(self.settings, DataKind.SCREENSHOTS)))
            screenshots = {}

        pages: list[PageLink] = []
        for name, entries in group_by_object(interactions).items():
            record = screenshots.get(name)
            if record is None:
                logger.warning("report.heatmap.screenshot_missing", logical_object=name, interactions=len(entries))
                continue

            points = self.build_points(entries, record["boundingBoxOrigin"])
            page_path = Path(name) / self.settings.HEATMAP_PAGE_FILENAME
            self._write(self.output_dir / page_path, self.render_page(name, points, record["screenshotPath"]))
            pages.append(PageLink(name=name, path=f"./{page_path.as_posix()}"))
            logger.debug("report.heatmap.page_generated", logical_object=name, points=len(points))

        index = self._write(
            self.output_dir / self.settings.HEATMAP_INDEX_FILENAME,
            render_template(load_template("index.html"), {"pagesData": to_script_json(pages)}),
        )
        logger.info("report.heatmap.generated", path=str(index), pages=len(pages))
        return index
