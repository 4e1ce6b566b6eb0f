from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.pipeline.worker_files import DataKind, kind_directory, worker_file_name

if TYPE_CHECKING:
    from pwtelemetry.collectors.worker_stats import WorkerStatCollector

logger = get_logger(__name__)


class PersistenceFlusher:
    def __init__(self, settings: Settings, store: SafeFileStore):
        self.settings = settings
        self.store = store

    def _payloads(self, collector: WorkerStatCollector) -> list[tuple[DataKind, Any]]:
        payloads: list[tuple[DataKind, Any]] = []
        if collector.network_enabled:
            payloads.append((DataKind.NETWORK, collector.request_map()))
        if collector.heatmap_enabled:
            payloads.append((DataKind.INTERACTIONS, collector.interaction_logs()))
            payloads.append((DataKind.SCREENSHOTS, collector.screenshots.records()))
        return payloads

    def flush(self, collector: WorkerStatCollector) -> list[Path]:
        written: list[Path] = []
        first_error: Exception | None = None

        for kind, payload in self._payloads(collector):
            target = kind_directory(self.settings, kind) / worker_file_name(collector.worker_index, kind)
            try:
                written.append(self.store.write_json(target, payload))
            except Exception as exc:
                logger.exception(
                    "flush.kind.failed",
                    kind=kind.value,
                    worker_index=collector.worker_index,
                    path=str(target),
                )
                if first_error is None:
                    first_error = exc
                continue
            logger.info(
                "flush.kind.written",
                kind=kind.value,
                worker_index=collector.worker_index,
                path=str(target),
                entries=len(payload),
            )

        if first_error is not None:
            raise first_error
        return written
