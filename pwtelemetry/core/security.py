from __future__ import annotations

import os
from pathlib import Path


class SandboxViolationError(PermissionError):
    pass


def _absolute(path: str | os.PathLike[str], workspace_root: Path) -> Path:
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = workspace_root / candidate
    return Path(os.path.abspath(candidate))


def _is_within(target: Path, root: Path) -> bool:
    return target == root or root in target.parents


def _symlinked_component(lexical: Path, bases: tuple[Path, ...]) -> Path | None:
    # Components above the workspace root are not ours to judge (e.g. /tmp -> /private/tmp).
    for base in bases:
        if not _is_within(lexical, base):
            continue
        current = base
        for part in lexical.relative_to(base).parts:
            current = current / part
            if current.is_symlink():
                return current
            if not current.exists():
                return None
        return None
    return None


def ensure_workspace_path(path: str | os.PathLike[str], workspace_root: str | os.PathLike[str]) -> Path:
    root_lexical = Path(os.path.abspath(Path(workspace_root).expanduser()))
    root_real = root_lexical.resolve()
    lexical = _absolute(path, root_lexical)

    if not (_is_within(lexical, root_lexical) or _is_within(lexical, root_real)):
        raise SandboxViolationError(f"Path traversal blocked: {lexical}")

    canonical = lexical.resolve()
    if not _is_within(canonical, root_real):
        raise SandboxViolationError(f"Path resolves outside workspace: {canonical}")

    link = _symlinked_component(lexical, (root_lexical, root_real))
    if link is not None:
        raise SandboxViolationError(f"Path contains a symlink: {link}")
    return canonical


def is_inside_workspace(path: str | os.PathLike[str], workspace_root: str | os.PathLike[str]) -> bool:
    try:
        ensure_workspace_path(path, workspace_root)
    except SandboxViolationError:
        return False
    return True
