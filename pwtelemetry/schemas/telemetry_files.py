from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class FailureEntryModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    testName: str
    responseCode: int


class RequestStatsModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: int = Field(ge=0)
    fail: int = Field(ge=0)
    failures: list[FailureEntryModel] = Field(default_factory=list)


class BoundingBoxModel(BaseModel):
    x: float
    y: float
    width: float
    height: float


class OriginModel(BaseModel):
    x: float
    y: float


class InteractionLogEntryModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    interactionType: str
    logicalObjectName: str
    timestamp: int
    boundingBox: BoundingBoxModel


class ScreenshotRecordModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    screenshotPath: str
    boundingBoxOrigin: OriginModel


RequestMapFile = TypeAdapter(dict[str, RequestStatsModel])
InteractionLogFile = TypeAdapter(list[InteractionLogEntryModel])
ScreenshotMapFile = TypeAdapter(dict[str, ScreenshotRecordModel])


def validate_request_map(payload: Any) -> dict[str, Any]:
    parsed = RequestMapFile.validate_python(payload)
    return {url: stats.model_dump() for url, stats in parsed.items()}


def validate_interaction_logs(payload: Any) -> list[dict[str, Any]]:
    return [entry.model_dump() for entry in InteractionLogFile.validate_python(payload)]


def validate_screenshot_map(payload: Any) -> dict[str, Any]:
    parsed = ScreenshotMapFile.validate_python(payload)
    return {name: record.model_dump() for name, record in parsed.items()}
