from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from pydantic import ValidationError

from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.core.security import SandboxViolationError
from pwtelemetry.pipeline.worker_files import DataKind, kind_directory, list_worker_files, merged_file_path
from pwtelemetry.schemas.telemetry_files import (
    validate_interaction_logs,
    validate_request_map,
    validate_screenshot_map,
)
from pwtelemetry.state.telemetry_state import (
    InteractionLogEntry,
    RequestMap,
    ScreenshotMap,
    copy_request_stats,
)

logger = get_logger(__name__)


class AggregationError(RuntimeError):
    def __init__(self, message: str, kind: DataKind, stage: str, path: Path | None = None):
        super().__init__(message)
        self.kind = kind
        self.stage = stage
        self.path = path


def merge_request_maps(maps: Iterable[RequestMap]) -> RequestMap:
    merged: RequestMap = {}
    for request_map in maps:
        for url, stats in request_map.items():
            existing = merged.get(url)
            if existing is None:
                merged[url] = copy_request_stats(stats)
                continue
            existing["success"] += int(stats["success"])
            existing["fail"] += int(stats["fail"])
            existing["failures"].extend(copy_request_stats(stats)["failures"])
    return merged


def merge_interaction_logs(lists: Iterable[list[InteractionLogEntry]]) -> list[InteractionLogEntry]:
    merged: list[InteractionLogEntry] = []
    for entries in lists:
        merged.extend(entries)
    return merged


def merge_screenshot_maps(maps: Iterable[ScreenshotMap]) -> ScreenshotMap:
    merged: ScreenshotMap = {}
    for screenshot_map in maps:
        for name, record in screenshot_map.items():
            if name in merged:
                continue
            merged[name] = record
    return merged


_VALIDATORS: dict[DataKind, Callable[[Any], Any]] = {
    DataKind.NETWORK: validate_request_map,
    DataKind.INTERACTIONS: validate_interaction_logs,
    DataKind.SCREENSHOTS: validate_screenshot_map,
}


_FOLDS: dict[DataKind, Callable[[Iterable[Any]], Any]] = {
    DataKind.NETWORK: merge_request_maps,
    DataKind.INTERACTIONS: merge_interaction_logs,
    DataKind.SCREENSHOTS: merge_screenshot_maps,
}


class AggregationMerger:
    def __init__(self, settings: Settings, store: SafeFileStore):
        self.settings = settings
        self.store = store

    def _load(self, kind: DataKind, path: Path) -> Any:
        try:
            raw = self.store.read_text(path)
        except SandboxViolationError:
            raise
        except OSError as exc:
            raise AggregationError(f"Cannot read worker file {path}: {exc}", kind, "read", path) from exc
        try:
            return _VALIDATORS[kind](json.loads(raw))
        except json.JSONDecodeError as exc:
            raise AggregationError(f"Corrupt worker file {path}: {exc}", kind, "parse", path) from exc
        except ValidationError as exc:
            raise AggregationError(f"Invalid worker file {path}: {exc}", kind, "validate", path) from exc

    def aggregate(self, kind: DataKind) -> Path | None:
        directory = kind_directory(self.settings, kind)
        try:
            files = list_worker_files(self.store, directory, kind)
        except SandboxViolationError:
            raise
        except OSError as exc:
            raise AggregationError(f"Cannot list {directory}: {exc}", kind, "list", directory) from exc

        if not files:
            logger.debug("merge.kind.nothing_to_merge", kind=kind.value, directory=str(directory))
            return None

        logger.info("merge.kind.start", kind=kind.value, files=len(files))
        payloads = [(path, self._load(kind, path)) for path in files]

        target = merged_file_path(self.settings, kind)
        try:
            merged = _FOLDS[kind](self._consume(payloads))
            self.store.write_json(target, merged)
        except SandboxViolationError:
            raise
        except OSError as exc:
            raise AggregationError(f"Aggregation of {kind.value} failed: {exc}", kind, "write", target) from exc

        logger.info("merge.kind.done", kind=kind.value, files=len(files), entries=len(merged), path=str(target))
        return target

    def _consume(self, payloads: list[tuple[Path, Any]]) -> Iterator[Any]:
        # each worker file is deleted once its payload has been folded
        for path, payload in payloads:
            yield payload
            self.store.delete_file(path)

    def aggregate_all(self, kinds: Iterable[DataKind] | None = None) -> dict[DataKind, Path | None]:
        selected = list(kinds) if kinds is not None else self.enabled_kinds()
        return {kind: self.aggregate(kind) for kind in selected}

    def enabled_kinds(self) -> list[DataKind]:
        kinds: list[DataKind] = []
        if self.settings.RUN_NETWORK_REPORT:
            kinds.append(DataKind.NETWORK)
        if self.settings.RUN_HEATMAP_REPORT:
            kinds.extend([DataKind.INTERACTIONS, DataKind.SCREENSHOTS])
        return kinds
