from __future__ import annotations

import re
from enum import Enum
from pathlib import Path

from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore

_WORKER_ID_RE = re.compile(r"(\d+)$")


class DataKind(str, Enum):
    NETWORK = "network"
    INTERACTIONS = "interactions"
    SCREENSHOTS = "screenshots"


def worker_file_name(worker_index: int, kind: DataKind) -> str:
    return f"worker-{int(worker_index)}-{kind.value}.json"


def worker_file_pattern(kind: DataKind) -> re.Pattern[str]:
    return re.compile(rf"^worker-(\d+)-{re.escape(kind.value)}\.json$")


def worker_index_from_id(worker_id: str | None) -> int:
    """Map an xdist worker id (``gw3``) to its index; anything else is worker 0."""
    match = _WORKER_ID_RE.search(str(worker_id or ""))
    return int(match.group(1)) if match else 0


def kind_directory(settings: Settings, kind: DataKind) -> Path:
    if kind is DataKind.NETWORK:
        return settings.network_report_path
    return settings.heatmap_report_path


def merged_file_path(settings: Settings, kind: DataKind) -> Path:
    names = {
        DataKind.NETWORK: settings.NETWORK_MERGED_FILENAME,
        DataKind.INTERACTIONS: settings.INTERACTIONS_MERGED_FILENAME,
        DataKind.SCREENSHOTS: settings.SCREENSHOTS_MERGED_FILENAME,
    }
    return kind_directory(settings, kind) / names[kind]


def list_worker_files(store: SafeFileStore, directory: Path, kind: DataKind) -> list[Path]:
    if not store.path_exists(directory):
        return []
    pattern = worker_file_pattern(kind)
    matches: list[tuple[int, str]] = []
    for name in store.list_dir(directory):
        found = pattern.match(name)
        if found:
            matches.append((int(found.group(1)), name))
    return [directory / name for _, name in sorted(matches)]
