from __future__ import annotations

from pathlib import Path
from typing import Any

from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.state.telemetry_state import Origin, ScreenshotMap, ScreenshotRecord, as_bounding_box

logger = get_logger(__name__)


class ScreenshotTracker:
    """First screenshot per logical object for one worker.

    ``screenshotPath`` is stored relative to the heatmap directory so the
    rendered pages can reference it without absolute paths. The file name
    carries the worker index because two workers may capture the same object.
    """

    def __init__(self, store: SafeFileStore, heatmap_dir: Path, worker_index: int):
        self._store = store
        self._heatmap_dir = Path(heatmap_dir)
        self._worker_index = int(worker_index)
        self._records: ScreenshotMap = {}

    def __contains__(self, logical_object_name: object) -> bool:
        return logical_object_name in self._records

    def records(self) -> ScreenshotMap:
        return self._records

    def capture(self, logical_object_name: str, target: Any, component: bool = False) -> ScreenshotRecord:
        existing = self._records.get(logical_object_name)
        if existing is not None:
            return existing

        directory = self._store.ensure_dir(self._heatmap_dir / logical_object_name)
        filename = f"screenshot-worker-{self._worker_index}.png"
        target_path = self._store.resolve(directory / filename)

        origin = Origin(x=0.0, y=0.0)
        if component:
            target.screenshot(path=str(target_path))
            box = as_bounding_box(target.bounding_box())
            if box is not None:
                origin = Origin(x=box["x"], y=box["y"])
        else:
            target.screenshot(path=str(target_path), full_page=True)

        relative = target_path.relative_to(self._store.resolve(self._heatmap_dir)).as_posix()
        record = ScreenshotRecord(screenshotPath=relative, boundingBoxOrigin=origin)
        self._records[logical_object_name] = record
        logger.debug(
            "heatmap.screenshot.captured",
            logical_object=logical_object_name,
            path=relative,
            component=component,
            worker_index=self._worker_index,
        )
        return record
