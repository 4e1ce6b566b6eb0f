from __future__ import annotations

from typing import Any, Callable, TypeVar

from pwtelemetry.collectors.worker_stats import WorkerStatCollector
from pwtelemetry.core.logger import get_logger
from pwtelemetry.state.telemetry_state import BoundingBox, InteractionType, as_bounding_box

logger = get_logger(__name__)

T = TypeVar("T")


class TrackedObject:
    """A logical page or component that interactions are attributed to.

    Page-level when ``root`` is None. With a root (a selector string or a
    locator) the object is a component and its screenshot is cropped to it.
    """

    def __init__(self, name: str, page: Any, root: Any = None):
        if not name:
            raise ValueError("TrackedObject requires a logical object name")
        self.name = name
        self.page = page
        self.root = page.locator(root) if isinstance(root, str) else root

    @property
    def is_component(self) -> bool:
        return self.root is not None

    @property
    def screenshot_target(self) -> Any:
        return self.root if self.root is not None else self.page

    def locator(self, selector: str) -> Any:
        if self.root is not None:
            return self.root.locator(selector)
        return self.page.locator(selector)


def _pre_action_box(locator: Any) -> BoundingBox | None:
    if not locator.is_visible():
        return None
    return as_bounding_box(locator.bounding_box())


def instrument_interaction(
    collector: WorkerStatCollector,
    interaction_type: InteractionType | str,
    tracked: TrackedObject,
    locator: Any,
    action: Callable[[], T],
) -> T:
    if not collector.heatmap_enabled:
        return action()

    box = _pre_action_box(locator)
    if not collector.has_screenshot(tracked.name):
        collector.screenshots.capture(tracked.name, tracked.screenshot_target, component=tracked.is_component)

    result = action()

    collector.record_interaction(interaction_type, tracked.name, box)
    if box is None:
        logger.debug("heatmap.interaction.not_visible", logical_object=tracked.name, interaction=str(interaction_type))
    return result


class Interactions:
    def __init__(self, collector: WorkerStatCollector, tracked: TrackedObject):
        self.collector = collector
        self.tracked = tracked

    def _resolve(self, target: Any) -> Any:
        return self.tracked.locator(target) if isinstance(target, str) else target

    def _run(self, interaction_type: InteractionType, locator: Any, action: Callable[[], T]) -> T:
        return instrument_interaction(self.collector, interaction_type, self.tracked, locator, action)

    def click(self, target: Any, **kwargs: Any) -> None:
        locator = self._resolve(target)
        self._run(InteractionType.CLICK, locator, lambda: locator.click(**kwargs))

    def double_click(self, target: Any, **kwargs: Any) -> None:
        locator = self._resolve(target)
        self._run(InteractionType.DOUBLE_CLICK, locator, lambda: locator.dblclick(**kwargs))

    def fill(self, target: Any, value: str, **kwargs: Any) -> None:
        locator = self._resolve(target)
        self._run(InteractionType.FILL, locator, lambda: locator.fill(value, **kwargs))

    def hover(self, target: Any, **kwargs: Any) -> None:
        locator = self._resolve(target)
        self._run(InteractionType.HOVER, locator, lambda: locator.hover(**kwargs))

    def check(self, target: Any, **kwargs: Any) -> None:
        locator = self._resolve(target)
        self._run(InteractionType.CHECK, locator, lambda: locator.check(**kwargs))

    def uncheck(self, target: Any, **kwargs: Any) -> None:
        locator = self._resolve(target)
        self._run(InteractionType.UNCHECK, locator, lambda: locator.uncheck(**kwargs))

    def select_option(self, target: Any, value: Any, **kwargs: Any) -> list[str]:
        locator = self._resolve(target)
        return self._run(InteractionType.SELECT_OPTION, locator, lambda: locator.select_option(value, **kwargs))

    def drag_and_drop(self, source: Any, destination: Any, **kwargs: Any) -> None:
        # Attributed to the source element.
        locator = self._resolve(source)
        target = self._resolve(destination)
        self._run(InteractionType.DRAG_DROP, locator, lambda: locator.drag_to(target, **kwargs))
