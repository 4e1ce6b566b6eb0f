from __future__ import annotations

import time
from pathlib import Path

from pwtelemetry.collectors.screenshots import ScreenshotTracker
from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.pipeline.flusher import PersistenceFlusher
from pwtelemetry.state.telemetry_state import (
    BoundingBox,
    FailureEntry,
    InteractionLogEntry,
    RequestMap,
    copy_request_stats,
    new_request_stats,
)

logger = get_logger(__name__)


class WorkerStatCollector:
    """Telemetry accumulated by one worker process.

    Network stats are recorded into a per-test map and folded into the
    worker-wide map by ``finish_test``. The worker-wide map and the interaction
    log only grow until ``flush`` writes them out at worker teardown.
    """

    def __init__(self, settings: Settings, store: SafeFileStore, worker_index: int = 0):
        self.settings = settings
        self.store = store
        self.worker_index = int(worker_index)
        self.network_enabled = bool(settings.RUN_NETWORK_REPORT)
        self.heatmap_enabled = bool(settings.RUN_HEATMAP_REPORT)
        self.screenshots = ScreenshotTracker(store, settings.heatmap_report_path, self.worker_index)
        self._test_stats: RequestMap = {}
        self._request_tracker: RequestMap = {}
        self._interaction_logs: list[InteractionLogEntry] = []

    def record_response(self, url: str, status_code: int, test_name: str) -> None:
        stats = self._test_stats.get(url)
        if stats is None:
            stats = new_request_stats()
            self._test_stats[url] = stats
        if int(status_code) >= 400:
            stats["fail"] += 1
            stats["failures"].append(FailureEntry(testName=test_name, responseCode=int(status_code)))
        else:
            stats["success"] += 1

    def record_interaction(
        self,
        interaction_type: str,
        logical_object_name: str,
        bounding_box: BoundingBox | None,
    ) -> None:
        if bounding_box is None:
            return
        self._interaction_logs.append(
            InteractionLogEntry(
                interactionType=str(getattr(interaction_type, "value", interaction_type)),
                logicalObjectName=logical_object_name,
                timestamp=int(time.time() * 1000),
                boundingBox=BoundingBox(
                    x=bounding_box["x"],
                    y=bounding_box["y"],
                    width=bounding_box["width"],
                    height=bounding_box["height"],
                ),
            )
        )

    def finish_test(self) -> RequestMap:
        failed = {url: copy_request_stats(stats) for url, stats in self._test_stats.items() if stats["fail"] > 0}
        for url, stats in self._test_stats.items():
            tracked = self._request_tracker.get(url)
            if tracked is None:
                self._request_tracker[url] = copy_request_stats(stats)
                continue
            tracked["success"] += stats["success"]
            tracked["fail"] += stats["fail"]
            tracked["failures"].extend(copy_request_stats(stats)["failures"])
        logger.debug(
            "network.test.folded",
            worker_index=self.worker_index,
            urls=len(self._test_stats),
            failing_urls=len(failed),
        )
        self._test_stats.clear()
        return failed

    def has_screenshot(self, logical_object_name: str) -> bool:
        return logical_object_name in self.screenshots

    def pending_test_stats(self) -> RequestMap:
        return self._test_stats

    def request_map(self) -> RequestMap:
        return self._request_tracker

    def interaction_logs(self) -> list[InteractionLogEntry]:
        return self._interaction_logs

    def flush(self) -> list[Path]:
        return PersistenceFlusher(self.settings, self.store).flush(self)
