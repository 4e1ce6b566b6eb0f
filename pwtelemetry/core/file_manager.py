from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any, Iterable

from pwtelemetry.core.logger import get_logger
from pwtelemetry.core.security import SandboxViolationError, ensure_workspace_path

logger = get_logger(__name__)

PathLike = str | os.PathLike[str]


class SafeFileStore:
    def __init__(self, workspace_root: PathLike):
        self.workspace_root = Path(workspace_root).expanduser().resolve()

    def resolve(self, path: PathLike) -> Path:
        return ensure_workspace_path(path, self.workspace_root)

    def path_exists(self, path: PathLike) -> bool:
        return self.resolve(path).exists()

    def ensure_dir(self, path: PathLike) -> Path:
        target = self.resolve(path)
        target.mkdir(parents=True, exist_ok=True)
        return target

    def list_dir(self, path: PathLike) -> list[str]:
        target = self.resolve(path)
        return sorted(child.name for child in target.iterdir())

    def read_text(self, path: PathLike) -> str:
        target = self.resolve(path)
        return target.read_text(encoding="utf-8")

    def read_json(self, path: PathLike) -> Any:
        return json.loads(self.read_text(path))

    def write_text(self, path: PathLike, content: str) -> Path:
        target = self.resolve(path)
        self.ensure_dir(target.parent)
        target.write_text(content, encoding="utf-8")
        return target

    def write_json(self, path: PathLike, payload: Any) -> Path:
        return self.write_text(path, json.dumps(payload, indent=2))

    def delete_file(self, path: PathLike) -> bool:
        target = self.resolve(path)
        if not target.exists():
            return False
        target.unlink()
        logger.debug("fs.file.deleted", path=str(target))
        return True

    def clean_up_folders(self, paths: Iterable[PathLike]) -> list[Path]:
        removed: list[Path] = []
        for raw in paths:
            try:
                target = self.resolve(raw)
            except SandboxViolationError as exc:
                logger.error("fs.cleanup.skipped_unsafe", path=str(raw), error=str(exc))
                continue
            if target == self.workspace_root:
                logger.error("fs.cleanup.skipped_root", path=str(target))
                continue
            if not target.exists():
                continue
            logger.info("fs.cleanup.deleting", path=str(target))
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
            removed.append(target)
        return removed
