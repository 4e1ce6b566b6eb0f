from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from pwtelemetry.collectors.worker_stats import WorkerStatCollector
from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore

pytest_plugins = ["pytester"]


class FakeLocator:
    def __init__(self, box: dict[str, float] | None = None, visible: bool = True, error: Exception | None = None):
        self.box = box
        self.visible = visible
        self.error = error
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.screenshots: list[str] = []

    def is_visible(self) -> bool:
        return self.visible

    def bounding_box(self) -> dict[str, float] | None:
        return dict(self.box) if self.box is not None else None

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self.box, self.visible, self.error)

    def screenshot(self, path: str, **kwargs: Any) -> bytes:
        Path(path).write_bytes(b"png")
        self.screenshots.append(path)
        return b"png"

    def _act(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error

    def click(self, **kwargs: Any) -> None:
        self._act("click")

    def dblclick(self, **kwargs: Any) -> None:
        self._act("dblclick")

    def fill(self, value: str, **kwargs: Any) -> None:
        self._act("fill", value)

    def hover(self, **kwargs: Any) -> None:
        self._act("hover")

    def check(self, **kwargs: Any) -> None:
        self._act("check")

    def uncheck(self, **kwargs: Any) -> None:
        self._act("uncheck")

    def select_option(self, value: Any, **kwargs: Any) -> list[str]:
        self._act("select_option", value)
        return [str(value)]

    def drag_to(self, target: "FakeLocator", **kwargs: Any) -> None:
        self._act("drag_to", target)


class FakePage:
    def __init__(self, locators: dict[str, FakeLocator] | None = None):
        self.locators = locators or {}
        self.screenshots: list[tuple[str, bool]] = []
        self.listeners: dict[str, list[Callable[..., None]]] = {}

    def locator(self, selector: str) -> FakeLocator:
        return self.locators.setdefault(selector, FakeLocator())

    def screenshot(self, path: str, full_page: bool = False, **kwargs: Any) -> bytes:
        Path(path).write_bytes(b"png")
        self.screenshots.append((path, full_page))
        return b"png"

    def on(self, event: str, handler: Callable[..., None]) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable[..., None]) -> None:
        self.listeners.get(event, []).remove(handler)


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    def factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "WORKSPACE_ROOT": str(tmp_path),
            "RUN_NETWORK_REPORT": True,
            "RUN_HEATMAP_REPORT": True,
        }
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def telemetry_settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest.fixture
def store(tmp_path: Path) -> SafeFileStore:
    return SafeFileStore(tmp_path)


@pytest.fixture
def collector(telemetry_settings: Settings, store: SafeFileStore) -> WorkerStatCollector:
    return WorkerStatCollector(telemetry_settings, store, worker_index=1)


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def make_locator() -> Callable[..., FakeLocator]:
    return FakeLocator
