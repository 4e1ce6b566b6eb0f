from __future__ import annotations

from enum import Enum
from typing import Any, TypedDict


class InteractionType(str, Enum):
    CLICK = "click"
    DOUBLE_CLICK = "doubleclick"
    FILL = "fill"
    HOVER = "hover"
    CHECK = "check"
    UNCHECK = "uncheck"
    DRAG_DROP = "dragdrop"
    SELECT_OPTION = "select_option"


class FailureEntry(TypedDict):
    testName: str
    responseCode: int


class RequestStats(TypedDict):
    success: int
    fail: int
    failures: list[FailureEntry]


RequestMap = dict[str, RequestStats]


class BoundingBox(TypedDict):
    x: float
    y: float
    width: float
    height: float


class Origin(TypedDict):
    x: float
    y: float


class InteractionLogEntry(TypedDict):
    interactionType: str
    logicalObjectName: str
    timestamp: int
    boundingBox: BoundingBox


class ScreenshotRecord(TypedDict):
    screenshotPath: str
    boundingBoxOrigin: Origin


ScreenshotMap = dict[str, ScreenshotRecord]


def new_request_stats() -> RequestStats:
    return RequestStats(success=0, fail=0, failures=[])


def copy_request_stats(stats: RequestStats) -> RequestStats:
    return RequestStats(
        success=int(stats["success"]),
        fail=int(stats["fail"]),
        failures=[FailureEntry(testName=f["testName"], responseCode=int(f["responseCode"])) for f in stats["failures"]],
    )


def as_bounding_box(raw: Any) -> BoundingBox | None:
    """Normalize a Playwright ``bounding_box()`` result (dict or None)."""
    if not raw:
        return None
    return BoundingBox(
        x=float(raw["x"]),
        y=float(raw["y"]),
        width=float(raw["width"]),
        height=float(raw["height"]),
    )
